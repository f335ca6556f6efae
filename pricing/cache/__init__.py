"""
Cache — read-through tiers in front of a fetch.

    from pricing.cache import cache, LocalTier

    records = cache(lambda pid: f"offers:product:{pid}", fetch).tier(LocalTier(ttl=30)).build()
    result = await records.get(product_id)
"""

from pricing.cache._types import Tier, LocalTier, CacheResult, CacheError, CacheErrorKind
from pricing.cache._builder import Cache, CacheExecutor, cache

__all__ = (
    "Tier",
    "LocalTier",
    "CacheResult",
    "CacheError",
    "CacheErrorKind",
    "Cache",
    "CacheExecutor",
    "cache",
)
