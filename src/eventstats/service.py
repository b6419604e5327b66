"""Statistics service wiring the cache, calculator and regeneration together.

Usage:
    store = InMemoryEventStore()
    service = StatisticsService(store)
    service.support.register_item_type("event")

    upcoming = await service.get_or_compute(
        StatisticType.TOTAL_ITEMS, {"temporal_partition": "upcoming"}
    )

    # From whatever observes the item store:
    await service.on_change_signal()
"""

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from .aggregation import StatisticsCalculator
from .cache import CacheStore, DiskCacheStore, MemoryCacheStore
from .config import StatisticsSettings
from .data_source import EventDataSource
from .hooks import PostProcessorRegistry
from .invalidation import ChangeListener, InvalidationCoordinator, PendingJobMarker
from .logging_config import get_logger
from .models import FilterSet, RegenerationReport, StatisticType
from .regeneration import RegenerationPlanner, RegenerationRunner
from .scheduler import AsyncioScheduler, DeferredScheduler
from .statistics import CachedStatistics
from .support import SupportRegistry

logger = get_logger(__name__)


def create_store(settings: StatisticsSettings, clock: Callable[[], datetime] | None = None) -> CacheStore:
    """Disk store when ``cache_dir`` is configured, memory store otherwise."""
    if settings.cache_dir:
        return DiskCacheStore(settings.cache_dir, clock=clock)
    return MemoryCacheStore(max_size=settings.memory_cache_size, clock=clock)


class StatisticsService:
    """Entry point for embedders: reads, change signals and regeneration."""

    def __init__(
        self,
        data_source: EventDataSource,
        settings: StatisticsSettings | None = None,
        store: CacheStore | None = None,
        scheduler: DeferredScheduler | None = None,
        support: SupportRegistry | None = None,
        post_processors: PostProcessorRegistry | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.settings = settings if settings is not None else StatisticsSettings()
        self.data_source = data_source
        self.store = store if store is not None else create_store(self.settings, clock=clock)
        self.scheduler = scheduler if scheduler is not None else AsyncioScheduler()
        if support is None:
            support = SupportRegistry(primary_item_type=self.settings.primary_item_type)
        self.support = support
        self.post_processors = post_processors if post_processors is not None else PostProcessorRegistry()

        self.calculator = StatisticsCalculator(data_source, self.support, self.post_processors)
        self.statistics = CachedStatistics(self.calculator, self.store, self.settings)

        marker = PendingJobMarker()
        self.planner = RegenerationPlanner(data_source, self.support, self.settings)
        self.runner = RegenerationRunner(
            self.calculator, self.store, self.planner, marker, self.settings, clock=clock
        )
        self.coordinator = InvalidationCoordinator(
            self.store, self.scheduler, self.regenerate, self.settings, marker=marker, clock=clock
        )
        self.changes = ChangeListener(self.coordinator, self.support, data_source, self.settings)

    async def get_or_compute(
        self,
        statistic_type: StatisticType | str,
        filters: FilterSet | Mapping[str, Any] | None = None,
    ) -> int:
        return await self.statistics.get_or_compute(statistic_type, filters)

    async def calculate(
        self,
        statistic_type: StatisticType | str,
        filters: FilterSet | Mapping[str, Any] | None = None,
    ) -> int:
        """Compute a statistic without touching the cache."""
        return await self.calculator.calculate(statistic_type, filters)

    async def on_change_signal(self, reason: str = "change") -> bool:
        return await self.coordinator.on_change_signal(reason)

    async def regenerate(self) -> RegenerationReport:
        """Regeneration entry point; also the scheduled job's callback."""
        return await self.runner.run()

    def activate(self) -> bool:
        """Schedule the first warm-up pass."""
        return self.coordinator.schedule_initial_warmup()

    async def deactivate(self) -> None:
        """Remove cached statistics and any pending regeneration."""
        await self.coordinator.shutdown()

    def supported_statistic_types(self, item_type: str | None = None) -> list[str]:
        return [statistic_type.value for statistic_type in self.support.supported_statistic_types(item_type)]

    async def available_categories(self, for_editor: bool = False) -> list[str]:
        """Categories offered for statistics, minus the ones excluded in that context."""
        if not self.support.has_supported_item_types():
            return []
        categories = await self.data_source.get_categories(exclude=self.settings.excluded_for(for_editor))
        logger.debug("Available categories (editor=%s): %s", for_editor, categories)
        return categories
