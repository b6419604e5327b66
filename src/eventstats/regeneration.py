"""Pre-warming of commonly requested statistics.

The planner enumerates the finite set of "common" requests from the current
categories, terms and enabled statistic types. The runner computes each one
and writes it to the store without looking at the cache first.

Example plan for one category with two terms and every type enabled::

    total_items             upcoming, past
    numeric_field_sum       upcoming, past
    total_terms_in_category past
    items_in_category       term 1 upcoming, term 1 past, term 2 upcoming, term 2 past
    numeric_field_sum       term 1 upcoming, term 1 past, term 2 upcoming, term 2 past
"""

from collections.abc import Callable
from datetime import datetime

from .aggregation import StatisticsCalculator
from .cache import CacheStore
from .cache_keys import derive_cache_key
from .config import StatisticsSettings
from .data_source import EventDataSource
from .invalidation import PendingJobMarker
from .logging_config import get_logger
from .models import (
    FilterSet,
    PlannedStatistic,
    RegenerationFailure,
    RegenerationReport,
    StatisticType,
    TemporalPartition,
)
from .support import SupportRegistry

logger = get_logger(__name__)

PARTITIONS = (TemporalPartition.UPCOMING, TemporalPartition.PAST)

# Partition used for statistics that ignore time. It matches the default the
# request layer applies, so pre-warmed entries are the ones reads look up.
TIMELESS_PARTITION = TemporalPartition.PAST


class RegenerationPlanner:
    """Enumerates the statistics worth pre-warming."""

    def __init__(
        self,
        data_source: EventDataSource,
        support: SupportRegistry,
        settings: StatisticsSettings | None = None,
    ):
        self.data_source = data_source
        self.support = support
        self.settings = settings if settings is not None else StatisticsSettings()

    async def plan(self) -> list[PlannedStatistic]:
        """Deterministic, ordered list of (statistic type, filters) to compute."""
        if not self.support.has_supported_item_types():
            return []

        enabled = set(self.support.supported_statistic_types())
        if not enabled:
            return []

        planned: list[PlannedStatistic] = []

        for statistic_type in (StatisticType.TOTAL_ITEMS, StatisticType.NUMERIC_FIELD_SUM):
            if statistic_type in enabled:
                for partition in PARTITIONS:
                    planned.append(PlannedStatistic(statistic_type, FilterSet(temporal_partition=partition)))

        categories = await self.data_source.get_categories(exclude=self.settings.excluded_categories)

        for category in categories:
            planned.extend(await self._plan_category(category, enabled))

        if StatisticType.TERMS_BY_CATEGORY in enabled and len(categories) > 1:
            planned.extend(await self._plan_cross_category(categories))

        return planned

    async def _plan_category(self, category: str, enabled: set[StatisticType]) -> list[PlannedStatistic]:
        planned = []

        if StatisticType.TOTAL_TERMS_IN_CATEGORY in enabled:
            planned.append(
                PlannedStatistic(
                    StatisticType.TOTAL_TERMS_IN_CATEGORY,
                    FilterSet(category=category, temporal_partition=TIMELESS_PARTITION),
                )
            )

        per_term_types = [
            statistic_type
            for statistic_type in (StatisticType.ITEMS_IN_CATEGORY, StatisticType.NUMERIC_FIELD_SUM)
            if statistic_type in enabled
        ]
        if not per_term_types:
            return planned

        for term in await self.data_source.get_terms(category, only_non_empty=False):
            for statistic_type in per_term_types:
                for partition in PARTITIONS:
                    planned.append(
                        PlannedStatistic(
                            statistic_type,
                            FilterSet(category=category, term_id=term.id, temporal_partition=partition),
                        )
                    )
        return planned

    async def _plan_cross_category(self, categories: list[str]) -> list[PlannedStatistic]:
        """Entries for each ordered category pair, capped per pair."""
        limit = self.settings.cross_category_term_limit
        if limit <= 0:
            return []

        planned = []
        for filter_category in categories:
            terms = await self.data_source.get_terms(filter_category, only_non_empty=False, limit=limit)
            for count_category in categories:
                if count_category == filter_category:
                    continue
                for term in terms:
                    planned.append(
                        PlannedStatistic(
                            StatisticType.TERMS_BY_CATEGORY,
                            FilterSet(
                                count_category=count_category,
                                filter_category=filter_category,
                                term_id=term.id,
                                temporal_partition=TIMELESS_PARTITION,
                            ),
                        )
                    )
        return planned


class RegenerationRunner:
    """Computes every planned statistic and writes it to the store."""

    def __init__(
        self,
        calculator: StatisticsCalculator,
        store: CacheStore,
        planner: RegenerationPlanner,
        marker: PendingJobMarker,
        settings: StatisticsSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.calculator = calculator
        self.store = store
        self.planner = planner
        self.marker = marker
        self.settings = settings if settings is not None else StatisticsSettings()
        self._clock = clock or datetime.now

    async def run(self) -> RegenerationReport:
        """Run one regeneration pass.

        The pending-job marker is cleared before anything else, so a change
        signal arriving mid-pass schedules a new job. A failing entry is
        recorded in the report and the pass moves on to the next one.
        """
        job = self.marker.clear()
        report = RegenerationReport(started_at=self._clock())
        if job is not None:
            logger.debug("Starting regeneration scheduled at %s (%s)", job.scheduled_at, job.reason)

        try:
            planned = await self.planner.plan()
        except Exception as e:
            logger.exception("Failed to plan statistics regeneration")
            report.failed = 1
            report.failures.append(
                RegenerationFailure(statistic_type=None, filters={}, error=str(e), exception_type=type(e).__name__)
            )
            report.finished_at = self._clock()
            return report

        report.planned = len(planned)

        for statistic_type, filters in planned:
            cache_key = derive_cache_key(statistic_type, filters, namespace=self.settings.namespace)
            try:
                value = await self.calculator.calculate(statistic_type, filters)
                await self.store.set(cache_key, value, self.settings.cache_ttl_seconds)
            except Exception as e:
                logger.warning("Failed to regenerate %s: %s", cache_key, e)
                report.failed += 1
                report.failures.append(
                    RegenerationFailure(
                        statistic_type=statistic_type,
                        filters=filters.canonical(),
                        error=str(e),
                        exception_type=type(e).__name__,
                    )
                )
                continue
            report.computed += 1

        report.finished_at = self._clock()
        logger.info(
            "Regenerated %d/%d statistics in %.2fs (%d failed)",
            report.computed,
            report.planned,
            report.duration_seconds,
            report.failed,
        )
        return report
