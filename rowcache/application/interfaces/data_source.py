"""Data source port: what the orchestrator calls on a cache miss."""

from __future__ import annotations

from typing import Any, Protocol


class IDataSource(Protocol):
    """Protocol for the underlying query executor (e.g. a SQLAlchemy session)."""

    async def execute(self, statement: Any) -> list[dict[str, Any]]:
        """Run the statement and return each row as a column -> value map."""
        ...
