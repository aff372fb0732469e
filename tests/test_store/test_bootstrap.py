"""Tests for credential bootstrap and session lifecycle."""

import pytest

from auth_state.caching import IdentityCache
from auth_state.exceptions import BackendError
from auth_state.store.auth_state import CREDS_KEY, AuthStateStore, open_auth_state

IDENTITY = "15551234567"
MEMORY_CONFIG = {"database": {"path": ":memory:"}}

SELECT = r"^\s*SELECT value"
INSERT = r"^\s*INSERT"


class TestBootstrap:
    """Tests for store initialization."""

    @pytest.mark.asyncio
    async def test_fresh_identity_synthesizes_and_persists(self, db, capabilities, creds_factory, metrics) -> None:
        """A new identity gets factory credentials with a durable row."""
        store = await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db)

        assert creds_factory.calls == 1
        assert store.creds["registrationId"] == 1001
        stored = await store.repository.select(IDENTITY, CREDS_KEY)
        assert capabilities.codec.decode(stored) == store.creds
        assert "auth_state.creds.created" in [name for name, _, _ in metrics]

    @pytest.mark.asyncio
    async def test_reopen_with_cold_cache_reuses_credentials(self, db, capabilities, creds_factory) -> None:
        """A second store for the same identity loads the stored creds."""
        first = await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db)
        inserts = db.count(INSERT)

        second = await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db)

        assert creds_factory.calls == 1
        assert second.creds == first.creds
        assert second.creds["noiseKey"]["private"] == b"\x01" * 32
        assert db.count(INSERT) == inserts

    @pytest.mark.asyncio
    async def test_reopen_with_shared_cache_skips_backend(self, db, capabilities) -> None:
        """Stores sharing a cache read creds without a select."""
        cache: IdentityCache = IdentityCache()
        first = await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db, cache=cache)
        selects = db.count(SELECT)

        second = await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db, cache=cache)

        assert second.creds == first.creds
        assert db.count(SELECT) == selects

    @pytest.mark.asyncio
    async def test_schema_provisioned_on_every_open(self, db, capabilities) -> None:
        """Every bootstrap provisions the table idempotently."""
        await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db)
        await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db)

        assert db.count(r"CREATE TABLE IF NOT EXISTS") == 2

    @pytest.mark.asyncio
    async def test_unreadable_creds_are_replaced_by_default(self, db, capabilities, creds_factory) -> None:
        """A failed creds read falls back to fresh credentials."""
        await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db)
        db.fail_on(SELECT)

        store = await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db)

        assert creds_factory.calls == 2
        assert store.creds["registrationId"] == 1002

    @pytest.mark.asyncio
    async def test_strict_bootstrap_refuses_unreadable_creds(self, db, capabilities, creds_factory) -> None:
        """With strict_bootstrap a failed creds read raises."""
        await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db)
        db.fail_on(SELECT)

        with pytest.raises(BackendError):
            await AuthStateStore.open(
                {**MEMORY_CONFIG, "strict_bootstrap": True}, IDENTITY, capabilities, db=db
            )
        assert creds_factory.calls == 1

    @pytest.mark.asyncio
    async def test_failed_creds_write_fails_open(self, db, capabilities) -> None:
        """If fresh creds cannot be persisted, open raises."""
        db.fail_on(INSERT)

        with pytest.raises(RuntimeError, match="simulated"):
            await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db)

    @pytest.mark.asyncio
    async def test_cache_size_from_config(self, db, capabilities) -> None:
        """A configured max_size bounds the store's cache."""
        store = await AuthStateStore.open(
            {**MEMORY_CONFIG, "cache": {"max_size": 3}}, IDENTITY, capabilities, db=db
        )
        for i in range(5):
            await store.set(f"pre-key-{i}", i)

        assert store.cache.size <= 3
        assert await store.get("pre-key-0") == 0


class TestSessionLifecycle:
    """Tests for save_creds, reset_session and close."""

    @pytest.mark.asyncio
    async def test_save_creds_persists_mutation(self, db, capabilities) -> None:
        """Mutated creds are re-persisted by save_creds."""
        store = await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db)
        store.creds["me"] = {"id": f"{IDENTITY}@s.whatsapp.net"}

        await store.save_creds()

        reopened = await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db)
        assert reopened.creds["me"] == {"id": f"{IDENTITY}@s.whatsapp.net"}

    @pytest.mark.asyncio
    async def test_save_creds_failure_propagates(self, db, capabilities) -> None:
        """save_creds surfaces write failures."""
        store = await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db)
        db.fail_on(INSERT)

        with pytest.raises(RuntimeError):
            await store.save_creds()

    @pytest.mark.asyncio
    async def test_unsaved_creds_edits_stay_out_of_cache(self, db, capabilities) -> None:
        """Edits whose save failed are not visible through get."""
        store = await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db)
        store.creds["me"] = {"id": f"{IDENTITY}@s.whatsapp.net"}
        db.fail_on(INSERT)

        with pytest.raises(RuntimeError):
            await store.save_creds()

        assert "me" not in await store.get(CREDS_KEY)
        stored = await store.repository.select(IDENTITY, CREDS_KEY)
        assert "me" not in capabilities.codec.decode(stored)

    @pytest.mark.asyncio
    async def test_loaded_creds_are_detached_from_cache(self, db, capabilities) -> None:
        """Creds loaded from a warm cache are a separate object."""
        cache: IdentityCache = IdentityCache()
        await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db, cache=cache)

        store = await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db, cache=cache)
        store.creds["registrationId"] = 7

        assert cache.get(IDENTITY, CREDS_KEY)["registrationId"] == 1001

    @pytest.mark.asyncio
    async def test_reset_session_clears_everything(self, db, capabilities, creds_factory) -> None:
        """reset_session drops all rows and cache entries of the identity."""
        store = await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db)
        await store.set_many({"pre-key": {"1": "a", "2": "b"}})

        await store.reset_session()

        assert await store.repository.count(IDENTITY) == 0
        assert store.cache.keys(IDENTITY) == []

        reopened = await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db)
        assert creds_factory.calls == 2
        assert reopened.creds != store.creds

    @pytest.mark.asyncio
    async def test_injected_db_is_not_closed(self, db, capabilities) -> None:
        """A store leaves a caller-supplied database open."""
        async with await AuthStateStore.open(MEMORY_CONFIG, IDENTITY, capabilities, db=db):
            pass

        assert not db.closed

    @pytest.mark.asyncio
    async def test_open_from_file_config(self, tmp_path, capabilities, creds_factory) -> None:
        """A store built from a config file owns and closes its database."""
        db_path = tmp_path / "auth.db"
        config_path = tmp_path / "store.yaml"
        config_path.write_text(f"database:\n  path: {db_path}\n  table: wa_auth\n")

        async with await open_auth_state(str(config_path), IDENTITY, capabilities) as store:
            created = store.creds
            await store.set("pre-key-1", {"public": b"\x07"})

        assert store.db._conn is None

        async with await open_auth_state(config_path, IDENTITY, capabilities) as store:
            assert store.creds == created
            assert await store.get("pre-key-1") == {"public": b"\x07"}

        assert creds_factory.calls == 1
