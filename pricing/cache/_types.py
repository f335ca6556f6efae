"""
Cache tiers and the values a cache read returns.
"""

from __future__ import annotations

import fnmatch
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto
from typing import Protocol

# ═══════════════════════════════════════════════════════════════════════════════
# Tier Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class Tier[T](Protocol):
    """
    One storage layer of a read-through cache.

    Implement this for shared backends (Redis etc.) when several storefront
    processes should see the same offer records.
    """

    @property
    def name(self) -> str:
        """Tier name for logs."""
        ...

    async def get(self, key: str) -> T | None:
        """Get value. Returns None on miss or expiry."""
        ...

    async def set(self, key: str, value: T) -> None:
        ...

    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if existed."""
        ...

    async def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching a glob pattern. Returns count."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Local Tier: in-memory LRU with TTL
# ═══════════════════════════════════════════════════════════════════════════════


class LocalTier[T]:
    """
    In-memory LRU tier whose entries expire after `ttl` seconds.

    ttl=None keeps entries until evicted or invalidated.

    Example:
        tier = LocalTier[OfferRecords](max_size=1000, ttl=30)
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_size = max_size
        self._ttl = ttl
        self._clock = clock
        self._entries: OrderedDict[str, tuple[T, float | None]] = OrderedDict()

    @property
    def name(self) -> str:
        return "local"

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    async def set(self, key: str, value: T) -> None:
        expires_at = self._clock() + self._ttl if self._ttl is not None else None
        if key in self._entries:
            self._entries.move_to_end(key)
        elif len(self._entries) >= self._max_size:
            self._entries.popitem(last=False)
        self._entries[key] = (value, expires_at)

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def delete_pattern(self, pattern: str) -> int:
        doomed = [k for k in self._entries if fnmatch.fnmatch(k, pattern)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)


# ═══════════════════════════════════════════════════════════════════════════════
# Cache Result
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CacheResult[T]:
    """Cache read with metadata."""
    value: T
    hit: bool
    tier: str | None


class CacheErrorKind(Enum):
    CONNECTION = auto()


@dataclass(frozen=True, slots=True)
class CacheError:
    kind: CacheErrorKind
    message: str


__all__ = (
    "Tier",
    "LocalTier",
    "CacheResult",
    "CacheError",
    "CacheErrorKind",
)
