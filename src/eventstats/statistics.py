"""Cache-through read path for statistics.

Workflow of ``get_or_compute``:
1. Validate the request (unsupported or malformed requests return 0)
2. Derive the cache key
3. Return the cached value on a hit
4. On a miss, calculate, store with the configured TTL and return

A failed calculation is logged and answered with 0 without writing.

There is no per-key locking: concurrent misses on the same key may each
compute and write, and the last writer wins. Store failures never reach the
caller; a failed read is a miss and a failed write only loses the cache entry.
"""

from collections.abc import Mapping
from typing import Any

from .aggregation import StatisticsCalculator, clamp
from .cache import CacheStore
from .cache_keys import derive_cache_key
from .config import StatisticsSettings
from .errors import CacheStoreError
from .logging_config import get_logger
from .models import FilterSet, StatisticType

logger = get_logger(__name__)


class CachedStatistics:
    """Serves statistics from the cache store, computing on miss."""

    def __init__(
        self,
        calculator: StatisticsCalculator,
        store: CacheStore,
        settings: StatisticsSettings | None = None,
    ):
        self.calculator = calculator
        self.store = store
        self.settings = settings if settings is not None else StatisticsSettings()

    def get_cache_key(
        self,
        statistic_type: StatisticType | str,
        filters: FilterSet | Mapping[str, Any] | None,
    ) -> str | None:
        """Cache key a valid request is stored under, or None for invalid requests."""
        request = self.calculator.validate_request(statistic_type, filters)
        if request is None:
            return None
        return derive_cache_key(*request, namespace=self.settings.namespace)

    async def get_or_compute(
        self,
        statistic_type: StatisticType | str,
        filters: FilterSet | Mapping[str, Any] | None = None,
    ) -> int:
        """Get a statistic, from cache when possible.

        Args:
            statistic_type: Statistic type to retrieve
            filters: FilterSet or mapping with a valid temporal partition

        Returns:
            Cached or freshly calculated non-negative value; 0 for invalid or
            unsupported requests and for failed calculations, neither of which
            is written to the cache.
        """
        request = self.calculator.validate_request(statistic_type, filters)
        if request is None:
            return 0

        parsed_type, filter_set = request
        cache_key = derive_cache_key(parsed_type, filter_set, namespace=self.settings.namespace)

        try:
            cached = await self.store.get(cache_key)
        except CacheStoreError as e:
            logger.warning("Cache read failed for %s, computing fresh: %s", cache_key, e)
            cached = None

        if cached is not None:
            logger.debug("Cache hit for %s", cache_key)
            return clamp(cached)

        logger.debug("Cache miss for %s", cache_key)
        try:
            value = await self.calculator.calculate(parsed_type, filter_set)
        except Exception:
            logger.exception("Calculation failed for %s", cache_key)
            return 0

        try:
            await self.store.set(cache_key, value, self.settings.cache_ttl_seconds)
        except CacheStoreError as e:
            logger.warning("Cache write failed for %s: %s", cache_key, e)

        return value
