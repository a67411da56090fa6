"""Cache protocol for the read-through layer (DIP)."""

from typing import Any, Protocol


class CacheProtocol(Protocol):
    """Protocol for cache stores (e.g. Redis).

    Values are either a record payload (attribute dict) or a pointer
    string holding another cache key.
    """

    def is_available(self) -> bool:
        """Return True if the store is connected and usable."""
        ...

    async def get(self, key: str) -> Any:
        """Return stored value or None."""
        ...

    async def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        """Store value with TTL in seconds. Returns True if stored."""
        ...

    async def delete(self, key: str) -> bool:
        """Remove key. Returns True if deleted."""
        ...
