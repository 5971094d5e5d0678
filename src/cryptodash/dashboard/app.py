"""FastAPI application factory for the dashboard's JSON API."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from cryptodash.dashboard.routes import api


def create_dashboard_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI dashboard application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to connect and close shared resources.

    Route handlers read their collaborators from ``app.state``: aggregator,
    resolver, store (None when the store is disabled) and sources.
    """
    app = FastAPI(
        title="Crypto Indicator Dashboard",
        lifespan=lifespan,
    )

    app.state.aggregator = None
    app.state.resolver = None
    app.state.store = None
    app.state.sources = None

    app.include_router(api.router, prefix="/api")

    return app
