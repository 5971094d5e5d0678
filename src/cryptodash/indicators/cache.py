"""Previous-value cache backing indicator deltas.

One instance lives for the whole process and is handed to the resolver
explicitly. It has no lock: every get/set pair in the resolver runs without
an await in between, which is atomic on a single event loop.
"""

from decimal import Decimal


class PreviousValueCache:
    """Last observed value per indicator slug."""

    def __init__(self) -> None:
        self._values: dict[str, Decimal] = {}

    def get(self, name: str) -> Decimal | None:
        return self._values.get(name)

    def set(self, name: str, value: Decimal) -> None:
        self._values[name] = value

    def clear(self) -> None:
        self._values.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)
