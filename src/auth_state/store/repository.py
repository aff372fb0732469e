"""SQL access to the auth state entry table."""

from auth_state.observability import Timer, emit_timer, get_logger
from auth_state.protocols.database import Database

logger = get_logger(__name__)


class AuthStateRepository:
    """Reads and writes rows of the ``(phone_number, key) -> value`` table.

    Values are stored as JSON text. Uniqueness of ``(phone_number, key)``
    is enforced by the table itself, so concurrent upserts of the same key
    resolve inside the database with the last writer winning.
    """

    def __init__(self, db: Database, table: str = "auth_state") -> None:
        """Initialize repository.

        Args:
            db: Database backend
            table: Table name, already validated as a plain identifier
        """
        self.db = db
        self.table = table

    async def ensure_schema(self) -> None:
        """Create the entry table if it does not exist yet."""
        await self.db.execute(f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                phone_number BIGINT NOT NULL,
                key TEXT NOT NULL,
                value TEXT,
                UNIQUE (phone_number, key)
            )
        """)

    async def upsert(self, identity: str, key_name: str, encoded: str) -> None:
        """Insert a row or replace the value of the existing one."""
        async with Timer() as t:
            await self.db.execute(
                f"""
                INSERT INTO {self.table} (phone_number, key, value)
                VALUES (:phone_number, :key, :value)
                ON CONFLICT (phone_number, key)
                DO UPDATE SET value = excluded.value
                """,
                {"phone_number": int(identity), "key": key_name, "value": encoded},
            )
        emit_timer("auth_state.backend.duration_ms", t.duration_ms, {"op": "upsert"})

    async def select(self, identity: str, key_name: str) -> str | None:
        """Look up the stored value of a key. Returns None if no row exists."""
        async with Timer() as t:
            rows = await self.db.execute(
                f"SELECT value FROM {self.table} "
                "WHERE phone_number = :phone_number AND key = :key LIMIT 1",
                {"phone_number": int(identity), "key": key_name},
            )
        emit_timer("auth_state.backend.duration_ms", t.duration_ms, {"op": "select"})
        if not rows:
            return None
        return rows[0].value

    async def delete(self, identity: str, key_name: str) -> None:
        """Delete the row of a key. No-op if it does not exist."""
        async with Timer() as t:
            await self.db.execute(
                f"DELETE FROM {self.table} WHERE phone_number = :phone_number AND key = :key",
                {"phone_number": int(identity), "key": key_name},
            )
        emit_timer("auth_state.backend.duration_ms", t.duration_ms, {"op": "delete"})

    async def delete_all(self, identity: str) -> None:
        """Delete every row of an identity."""
        async with Timer() as t:
            await self.db.execute(
                f"DELETE FROM {self.table} WHERE phone_number = :phone_number",
                {"phone_number": int(identity)},
            )
        emit_timer("auth_state.backend.duration_ms", t.duration_ms, {"op": "delete_all"})
        logger.debug("Deleted all rows", context={"table": self.table})

    async def count(self, identity: str) -> int:
        """Count rows stored for an identity."""
        rows = await self.db.execute(
            f"SELECT COUNT(*) AS n FROM {self.table} WHERE phone_number = :phone_number",
            {"phone_number": int(identity)},
        )
        return rows[0].n

    async def keys(self, identity: str) -> list[str]:
        """List key names stored for an identity."""
        rows = await self.db.execute(
            f"SELECT key FROM {self.table} WHERE phone_number = :phone_number ORDER BY key",
            {"phone_number": int(identity)},
        )
        return [row.key for row in rows]
