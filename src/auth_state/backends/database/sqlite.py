"""SQLite database backend."""

import asyncio
import re
import sqlite3
from pathlib import Path
from typing import Any

from auth_state.protocols.database import Row

PARAM_RE = re.compile(r":(\w+)")


class SQLiteDatabase:
    """SQLite database backend.

    Wraps a single sqlite3 connection; statements are serialized on an
    asyncio lock so concurrent coroutines never share a cursor.
    """

    def __init__(
        self,
        path: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize SQLite database.

        Args:
            path: Path to SQLite database file. Defaults to ./data/auth_state.db
                  Use ":memory:" for in-memory database.
            **kwargs: Ignored (for compatibility with other backends)
        """
        if path == ":memory:":
            self.path: str | Path = ":memory:"
        else:
            self.path = Path(path) if path else Path("./data/auth_state.db")
            self.path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    @staticmethod
    def _convert_params(
        query: str,
        params: dict[str, Any] | None,
    ) -> tuple[str, tuple[Any, ...]]:
        """Replace :name placeholders with ? and order values to match."""
        if not params:
            return query, ()

        param_names: list[str] = []

        def replace_param(match: re.Match[str]) -> str:
            param_names.append(match.group(1))
            return "?"

        query = PARAM_RE.sub(replace_param, query)
        return query, tuple(params[name] for name in param_names)

    async def execute(
        self,
        query: str,
        params: dict[str, Any] | None = None,
    ) -> list[Row]:
        """Execute a query and return results."""
        async with self._lock:
            conn = self._get_connection()
            query, param_values = self._convert_params(query, params)

            try:
                cursor = conn.execute(query, param_values)
                rows = cursor.fetchall()
                conn.commit()
            except sqlite3.Error:
                conn.rollback()
                raise

            return [Row(_data=dict(row)) for row in rows]

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
