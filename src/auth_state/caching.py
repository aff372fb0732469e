"""Identity-scoped in-memory cache.

Entries are keyed by ``"<identity>:<key_name>"`` and never expire on their
own. An optional size bound evicts the oldest entries first.
"""

import time
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")

SEPARATOR = ":"


def composite_key(identity: str, key_name: str) -> str:
    """Build the cache key for an identity's entry."""
    return f"{identity}{SEPARATOR}{key_name}"


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with insertion metadata."""

    value: T
    created_at: float = field(default_factory=time.monotonic)


class IdentityCache(Generic[T]):
    """In-memory cache of decoded values, scoped by identity.

    Operations are synchronous and never suspend, so they are safe to use
    from any coroutine running on the same event loop.

    Example:
        cache: IdentityCache[Any] = IdentityCache()
        cache.set("15551234567", "creds", creds)
        cache.get("15551234567", "creds")
    """

    def __init__(self, max_size: int | None = None) -> None:
        """Initialize cache.

        Args:
            max_size: Maximum number of entries before eviction.
                ``None`` keeps every entry until it is deleted.
        """
        if max_size is not None and max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self._cache: dict[str, CacheEntry[T]] = {}

    def get(self, identity: str, key_name: str) -> T | None:
        """Get a value from cache. Returns None if not cached."""
        entry = self._cache.get(composite_key(identity, key_name))
        if entry is None:
            return None
        return entry.value

    def contains(self, identity: str, key_name: str) -> bool:
        """Check whether an entry is cached."""
        return composite_key(identity, key_name) in self._cache

    def set(self, identity: str, key_name: str, value: T) -> None:
        """Set a value, overwriting any existing entry."""
        key = composite_key(identity, key_name)
        if (
            self.max_size is not None
            and len(self._cache) >= self.max_size
            and key not in self._cache
        ):
            self._evict_oldest()
        self._cache[key] = CacheEntry(value=value)

    def _evict_oldest(self) -> None:
        """Evict the oldest 10% of entries to make room."""
        if not self._cache:
            return

        sorted_keys = sorted(
            self._cache.keys(),
            key=lambda k: self._cache[k].created_at,
        )
        evict_count = max(1, len(sorted_keys) // 10)
        for key in sorted_keys[:evict_count]:
            del self._cache[key]

    def delete(self, identity: str, key_name: str) -> bool:
        """Delete an entry.

        Returns True if the entry existed.
        """
        return self._cache.pop(composite_key(identity, key_name), None) is not None

    def clear(self, identity: str) -> int:
        """Remove every entry scoped to an identity.

        The separator is part of the prefix, so identity ``123`` never
        matches entries of identity ``1234``.

        Returns number of entries removed.
        """
        prefix = composite_key(identity, "")
        keys_to_delete = [key for key in self._cache if key.startswith(prefix)]
        for key in keys_to_delete:
            del self._cache[key]
        return len(keys_to_delete)

    def keys(self, identity: str) -> list[str]:
        """List cached key names for an identity."""
        prefix = composite_key(identity, "")
        return [key[len(prefix):] for key in self._cache if key.startswith(prefix)]

    @property
    def size(self) -> int:
        """Get current cache size."""
        return len(self._cache)
