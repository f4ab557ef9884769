"""
Counter store interface.

Holds small JSON documents keyed by name, e.g. the rate limiter's
`{"count": 3, "reset_at": 1740481260.0}` windows. Values survive process
restarts in the SQLite backend, the way browser local storage would.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class CounterStore(ABC):
    """
    Implementations:
        SQLiteCounterStore — file-based, default
        MemoryCounterStore — for tests and ephemeral runs
    """

    @abstractmethod
    async def load(self, key: str) -> dict[str, Any] | None:
        """The stored document, or None if the key is unknown."""
        ...

    @abstractmethod
    async def save(self, key: str, value: dict[str, Any]) -> None:
        """Store a document, overwriting any previous one."""
        ...

    @abstractmethod
    async def remove(self, key: str) -> bool:
        """Drop a key. Returns True if it existed."""
        ...

    async def close(self) -> None:
        """Release resources. Default: nothing to release."""
        return None
