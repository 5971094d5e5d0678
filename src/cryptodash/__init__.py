"""Crypto indicator dashboard: market-data acquisition, snapshots and JSON API."""

__version__ = "0.1.0"
