"""Pytest configuration and fixtures."""

import re
from typing import Any

import pytest

from auth_state.backends.database.sqlite import SQLiteDatabase
from auth_state.observability import register_metric_callback, unregister_metric_callback
from auth_state.protocols.capabilities import AuthCapabilities
from auth_state.protocols.database import Row


class InstrumentedDatabase:
    """Database wrapper that records queries and can inject failures."""

    def __init__(self, inner: SQLiteDatabase) -> None:
        self.inner = inner
        self.queries: list[str] = []
        self._failures: list[tuple[re.Pattern[str], str | None]] = []
        self.closed = False

    def fail_on(self, pattern: str, key: str | None = None) -> None:
        """Make queries matching pattern raise a RuntimeError.

        With key set, only queries whose :key parameter equals it fail.
        """
        self._failures.append((re.compile(pattern, re.IGNORECASE | re.DOTALL), key))

    def heal(self) -> None:
        """Stop injecting failures."""
        self._failures.clear()

    def count(self, pattern: str) -> int:
        """Count recorded queries matching pattern."""
        regex = re.compile(pattern, re.IGNORECASE | re.DOTALL)
        return sum(1 for q in self.queries if regex.search(q))

    async def execute(self, query: str, params: dict[str, Any] | None = None) -> list[Row]:
        self.queries.append(query)
        for regex, key in self._failures:
            if regex.search(query) and (key is None or (params or {}).get("key") == key):
                raise RuntimeError("simulated backend failure")
        return await self.inner.execute(query, params)

    async def close(self) -> None:
        self.closed = True
        await self.inner.close()


@pytest.fixture
async def sqlite_db():
    """Create an in-memory SQLite database."""
    database = SQLiteDatabase(path=":memory:")
    yield database
    await database.close()


@pytest.fixture
def db(sqlite_db) -> InstrumentedDatabase:
    """In-memory database that records queries."""
    return InstrumentedDatabase(sqlite_db)


@pytest.fixture
def creds_factory():
    """Credential factory that counts how often it was called."""

    def init_creds() -> dict[str, Any]:
        init_creds.calls += 1
        return {
            "registrationId": 1000 + init_creds.calls,
            "noiseKey": {"private": b"\x01" * 32, "public": b"\x02" * 32},
            "advSecretKey": "c2VjcmV0",
        }

    init_creds.calls = 0
    return init_creds


@pytest.fixture
def capabilities(creds_factory) -> AuthCapabilities:
    """Capabilities with the default codec and a tagging key decoder."""
    return AuthCapabilities(
        init_creds=creds_factory,
        decode_app_state_sync_key=lambda value: {"decoded": value},
    )


@pytest.fixture
def metrics():
    """Collect emitted metrics."""
    received: list[tuple[str, float, dict[str, Any]]] = []

    def callback(name: str, value: float, labels: dict[str, Any]) -> None:
        received.append((name, value, labels))

    register_metric_callback(callback)
    yield received
    unregister_metric_callback(callback)
