"""Cache-coherent auth state store for a single identity.

Reads go to the in-memory cache first and fall through to the database on
a miss. Writes go to the database first and reach the cache only once the
database accepted them, so the cache never holds a value that failed to
persist.
"""

import copy
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from auth_state.backends.database import create_database
from auth_state.caching import IdentityCache
from auth_state.config import StoreConfig
from auth_state.exceptions import BackendError, ConfigError
from auth_state.observability import IdentityContext, emit_counter, get_logger
from auth_state.protocols.capabilities import AuthCapabilities
from auth_state.protocols.database import Database
from auth_state.store.batch import FanOut
from auth_state.store.repository import AuthStateRepository
from auth_state.store.result import ReadResult, ReadStatus

logger = get_logger(__name__)

CREDS_KEY = "creds"
APP_STATE_SYNC_KEY = "app-state-sync-key"

# Identities are stored in a signed 64-bit column
IDENTITY_RE = re.compile(r"^[0-9]{1,19}$")
MAX_IDENTITY = 2**63 - 1


def validate_identity(identity: Any) -> str:
    """Validate a phone-number identity.

    Raises:
        ConfigError: If the identity is not a string of decimal digits
            that fits a 64-bit integer column
    """
    if not identity or not isinstance(identity, str):
        raise ConfigError("identity must be a non-empty string.")
    if not IDENTITY_RE.match(identity) or int(identity) > MAX_IDENTITY:
        raise ConfigError(f"identity must be a phone number of digits only, got {identity!r}.")
    return identity


def load_config(config: StoreConfig | Mapping[str, Any] | str | Path) -> StoreConfig:
    """Normalize the accepted configuration forms to a StoreConfig."""
    if isinstance(config, StoreConfig):
        return config
    if isinstance(config, Mapping):
        return StoreConfig.from_dict(dict(config))
    if isinstance(config, (str, Path)):
        return StoreConfig.from_file(config)
    raise ConfigError("Invalid connection options.")


class SignalKeyStore:
    """The ``keys`` half of an authentication state."""

    def __init__(self, store: "AuthStateStore") -> None:
        self._store = store

    async def get(self, category: str, ids: Iterable[str]) -> dict[str, Any]:
        """Read keys of a category; see AuthStateStore.get_many."""
        return await self._store.get_many(category, ids)

    async def set(self, data: Mapping[str, Mapping[str, Any] | None]) -> None:
        """Write or delete keys; see AuthStateStore.set_many."""
        await self._store.set_many(data)


@dataclass
class AuthenticationState:
    """Credentials plus key access, as handed to the protocol layer."""

    creds: Any
    keys: SignalKeyStore


class AuthStateStore:
    """Read-through/write-through store of one identity's auth state.

    Example:
        async with await AuthStateStore.open(
            {"database": {"path": "auth.db"}},
            "15551234567",
            AuthCapabilities(init_creds=init_auth_creds),
        ) as store:
            keys = await store.get_many("pre-key", ["1", "2"])
            store.creds["me"] = {"id": "15551234567"}
            await store.save_creds()
    """

    def __init__(
        self,
        db: Database,
        identity: str,
        capabilities: AuthCapabilities,
        *,
        table: str = "auth_state",
        cache: IdentityCache[Any] | None = None,
        strict_bootstrap: bool = False,
        owns_db: bool = False,
    ) -> None:
        """Initialize the store. Call :meth:`bootstrap` before use.

        Args:
            db: Database backend
            identity: Phone number the store is bound to
            capabilities: Caller-supplied codec and factories
            table: Entry table name
            cache: Cache to use; a private unbounded one when omitted.
                Pass one cache to several stores to share it.
            strict_bootstrap: Raise instead of synthesizing credentials
                when the stored ones cannot be read
            owns_db: Close the database in :meth:`close`

        Raises:
            ConfigError: If the identity or capabilities are invalid
        """
        if db is None:
            raise ConfigError("Invalid connection options.")
        if not isinstance(capabilities, AuthCapabilities):
            raise ConfigError("Missing required dependencies.")

        self.identity = validate_identity(identity)
        self.capabilities = capabilities.validate()
        self.db = db
        self.repository = AuthStateRepository(db, table)
        self.cache: IdentityCache[Any] = cache if cache is not None else IdentityCache()
        self.strict_bootstrap = strict_bootstrap
        self._owns_db = owns_db
        self.creds: Any = None
        self.keys = SignalKeyStore(self)

    @classmethod
    async def open(
        cls,
        config: StoreConfig | Mapping[str, Any] | str | Path,
        identity: str,
        capabilities: AuthCapabilities,
        *,
        db: Database | None = None,
        cache: IdentityCache[Any] | None = None,
    ) -> "AuthStateStore":
        """Create a store from configuration and bootstrap its credentials.

        Args:
            config: StoreConfig, a dict, or a path to a YAML/JSON file
            identity: Phone number the store is bound to
            capabilities: Caller-supplied codec and factories
            db: Use this database instead of creating one from config
            cache: Cache to use instead of a private one

        Returns:
            A store whose ``creds`` are loaded and durably stored

        Raises:
            ConfigError: If any input is invalid
        """
        store_config = load_config(config)
        owns_db = db is None
        if db is None:
            db = create_database(store_config.database)

        if cache is None and store_config.cache.max_size is not None:
            cache = IdentityCache(max_size=store_config.cache.max_size)

        try:
            store = cls(
                db,
                identity,
                capabilities,
                table=store_config.database.table,
                cache=cache,
                strict_bootstrap=store_config.strict_bootstrap,
                owns_db=owns_db,
            )
            await store.bootstrap()
        except BaseException:
            if owns_db:
                await db.close()
            raise
        return store

    async def bootstrap(self) -> Any:
        """Provision the schema and load or create credentials.

        Fresh credentials from ``init_creds`` are persisted immediately, so
        a durable row exists before the store is handed out.

        Returns:
            The live credentials object
        """
        with IdentityContext(self.identity):
            await self.repository.ensure_schema()

            result = await self.read(CREDS_KEY)
            if result.status is ReadStatus.FAILED and self.strict_bootstrap:
                raise BackendError("Stored credentials could not be read") from result.error

            if result.found and result.value is not None:
                # Caller edits creds in place; the cached entry stays the saved copy
                self.creds = copy.deepcopy(result.value)
            else:
                self.creds = self.capabilities.init_creds()
                await self.set(CREDS_KEY, self.creds)
                logger.info("Created new credentials")
                emit_counter("auth_state.creds.created")
        return self.creds

    @property
    def state(self) -> AuthenticationState:
        """Credentials and key access for the protocol layer."""
        return AuthenticationState(creds=self.creds, keys=self.keys)

    async def read(self, key_name: str) -> ReadResult:
        """Read a key, telling absent keys and failed reads apart.

        A cache hit returns without touching the database. Backend and
        decode errors are logged and reported as ``FAILED``.
        """
        if self.cache.contains(self.identity, key_name):
            emit_counter("auth_state.cache.hit")
            return ReadResult.ok(self.cache.get(self.identity, key_name))

        emit_counter("auth_state.cache.miss")
        try:
            stored = await self.repository.select(self.identity, key_name)
            if stored is None:
                return ReadResult.not_found()
            value = self.capabilities.codec.decode(stored)
        except Exception as e:
            logger.error("Error getting auth key", context={"key": key_name}, error=e)
            emit_counter("auth_state.read.failed")
            return ReadResult.failed(e)

        self.cache.set(self.identity, key_name, value)
        return ReadResult.ok(value)

    async def get(self, key_name: str) -> Any:
        """Get a key's value. Returns None if absent or unreadable."""
        result = await self.read(key_name)
        return result.value if result.found else None

    async def set(self, key_name: str, value: Any) -> None:
        """Persist a value, then cache a decoded copy of what was stored.

        Later changes to ``value`` stay out of the cache until set again.

        Raises:
            Exception: Whatever the codec or database raised; the cache
                keeps its previous entry
        """
        try:
            encoded = self.capabilities.codec.encode(value)
            await self.repository.upsert(self.identity, key_name, encoded)
        except Exception as e:
            logger.error("Error setting auth key", context={"key": key_name}, error=e)
            emit_counter("auth_state.write.failed")
            raise

        try:
            stored = self.capabilities.codec.decode(encoded)
        except Exception:
            # Row is committed but unreadable here; let the next read go to the database
            self.cache.delete(self.identity, key_name)
            raise
        self.cache.set(self.identity, key_name, stored)

    async def delete(self, key_name: str) -> None:
        """Delete a key. Failures are logged, not raised."""
        try:
            await self.repository.delete(self.identity, key_name)
        except Exception as e:
            logger.error("Error deleting auth key", context={"key": key_name}, error=e)
            emit_counter("auth_state.delete.failed")
            return

        self.cache.delete(self.identity, key_name)

    async def clear(self) -> None:
        """Delete every key of the identity. Failures are logged, not raised."""
        try:
            await self.repository.delete_all(self.identity)
        except Exception as e:
            logger.error("Error clearing auth state", error=e)
            emit_counter("auth_state.clear.failed")
            return

        removed = self.cache.clear(self.identity)
        logger.info("Cleared auth state", context={"cache_entries": removed})

    async def _get_key(self, category: str, id: str) -> Any:
        value = await self.get(f"{category}-{id}")
        if value is not None and category == APP_STATE_SYNC_KEY:
            value = self.capabilities.decode_key(value)
        return value

    async def get_many(self, category: str, ids: Iterable[str]) -> dict[str, Any]:
        """Read several keys of a category concurrently.

        Returns:
            One entry per requested id: the value, or None if absent or
            unreadable. ``app-state-sync-key`` values are passed through
            the capability decoder.
        """
        ids = list(ids)
        with IdentityContext(self.identity):
            fan_out: FanOut[Any] = FanOut()
            for id in ids:
                fan_out.spawn(self._get_key(category, id))
            values = await fan_out.join()
        return dict(zip(ids, values))

    async def set_many(self, data: Mapping[str, Mapping[str, Any] | None]) -> None:
        """Write several keys concurrently.

        A None value deletes the key. Every operation runs to completion;
        the first write error is raised afterwards.
        """
        with IdentityContext(self.identity):
            fan_out: FanOut[None] = FanOut()
            for category, entries in data.items():
                for id, value in (entries or {}).items():
                    key_name = f"{category}-{id}"
                    if value is not None:
                        fan_out.spawn(self.set(key_name, value))
                    else:
                        fan_out.spawn(self.delete(key_name))
            await fan_out.join()

    async def save_creds(self) -> None:
        """Persist the current in-memory credentials."""
        with IdentityContext(self.identity):
            await self.set(CREDS_KEY, self.creds)

    async def reset_session(self) -> None:
        """Drop every stored key and cached entry of the identity."""
        with IdentityContext(self.identity):
            await self.clear()

    async def close(self) -> None:
        """Close the database if this store created it."""
        if self._owns_db:
            await self.db.close()

    async def __aenter__(self) -> "AuthStateStore":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


async def open_auth_state(
    config: StoreConfig | Mapping[str, Any] | str | Path,
    identity: str,
    capabilities: AuthCapabilities,
    **kwargs: Any,
) -> AuthStateStore:
    """Open a bootstrapped auth state store. See :meth:`AuthStateStore.open`."""
    return await AuthStateStore.open(config, identity, capabilities, **kwargs)
