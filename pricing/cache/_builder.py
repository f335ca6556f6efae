"""
Read-through cache: cache(key, fetch).tier(...).build() → CacheExecutor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from collections.abc import Callable

from kungfu import LazyCoroResult, Result, Ok, Error

from pricing._log import get_logger
from pricing.cache._types import Tier, CacheResult, CacheError, CacheErrorKind

logger = get_logger("cache")

type KeyFn[K] = Callable[[K], str]
type Fetch[K, T, E] = Callable[[K], LazyCoroResult[T, E]]


# ═══════════════════════════════════════════════════════════════════════════════
# Builder
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True, frozen=True)
class Cache[K, T, E]:
    """
    Immutable description of a read-through cache.

    K is what callers look up by, T what fetch produces, E how fetch fails.

    Example:
        product_records = (
            cache(lambda pid: f"offers:product:{pid}", fetch_product_offers)
            .tier(LocalTier(max_size=1000, ttl=30))
            .build()
        )
    """

    key_of: KeyFn[K]
    load: Fetch[K, T, E]
    layers: tuple[Tier[T], ...] = ()

    def tier(self, layer: Tier[T]) -> Cache[K, T, E]:
        """Append a tier; reads try tiers in the order they were added."""
        return Cache(self.key_of, self.load, (*self.layers, layer))

    def build(self) -> CacheExecutor[K, T, E]:
        return CacheExecutor(key_of=self.key_of, layers=self.layers, load=self.load)


# ═══════════════════════════════════════════════════════════════════════════════
# Executor
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class CacheExecutor[K, T, E]:
    """
    Built cache. Invalidation bumps a generation; a fetch that started
    under an older generation returns its value but does not store it.
    """

    key_of: KeyFn[K]
    layers: tuple[Tier[T], ...]
    load: Fetch[K, T, E]
    _epoch: int = field(default=0, init=False)
    _slot_epochs: dict[str, int] = field(default_factory=dict[str, int], init=False)

    def _generation(self, slot: str) -> tuple[int, int]:
        return self._epoch, self._slot_epochs.get(slot, 0)

    def get(self, key: K) -> LazyCoroResult[CacheResult[T], E]:
        """
        Read through the tiers, then fall back to fetch.

        A failing tier is logged and skipped; a fetch error is returned
        untouched and nothing is cached for it.
        """
        slot = self.key_of(key)

        async def lookup() -> Result[CacheResult[T], E]:
            for layer in self.layers:
                try:
                    held = await layer.get(slot)
                except Exception as e:
                    logger.warning("cache tier %s read failed for %s: %s", layer.name, slot, e)
                    continue
                if held is not None:
                    return Ok(CacheResult(value=held, hit=True, tier=layer.name))

            started = self._generation(slot)
            match await self.load(key):
                case Ok(fresh):
                    if self._generation(slot) == started:
                        await self._store(slot, fresh)
                    else:
                        logger.debug("not caching %s: invalidated during fetch", slot)
                    return Ok(CacheResult(value=fresh, hit=False, tier=None))
                case Error(e):
                    return Error(e)

        return LazyCoroResult(lookup)

    async def _store(self, slot: str, value: T) -> None:
        for layer in self.layers:
            try:
                await layer.set(slot, value)
            except Exception as e:
                logger.warning("cache tier %s write failed for %s: %s", layer.name, slot, e)

    async def invalidate(self, key: K) -> Result[bool, CacheError]:
        """Drop key from every tier. Ok(True) if any tier held it."""
        slot = self.key_of(key)
        self._slot_epochs[slot] = self._slot_epochs.get(slot, 0) + 1
        existed = False
        for layer in self.layers:
            try:
                existed = await layer.delete(slot) or existed
            except Exception as e:
                return Error(CacheError(CacheErrorKind.CONNECTION, f"{layer.name}: {e}"))
        return Ok(existed)

    async def invalidate_pattern(self, pattern: str) -> Result[int, CacheError]:
        """Drop keys matching a glob pattern from every tier."""
        self._epoch += 1
        dropped = 0
        for layer in self.layers:
            try:
                dropped += await layer.delete_pattern(pattern)
            except Exception as e:
                return Error(CacheError(CacheErrorKind.CONNECTION, f"{layer.name}: {e}"))
        return Ok(dropped)


def cache[K, T, E](key: KeyFn[K], fetch: Fetch[K, T, E]) -> Cache[K, T, E]:
    """Start a cache over fetch, keyed by key(k)."""
    return Cache(key, fetch)


__all__ = ("Cache", "CacheExecutor", "cache")
