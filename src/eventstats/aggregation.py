"""Aggregation dispatcher and the algorithms behind each statistic type.

``StatisticsCalculator.calculate`` is the only entry point. It validates the
request, routes it to one of four algorithms, clamps the result to a
non-negative integer and runs the post-processing hooks. Invalid or
unsupported requests return ``0``; errors raised by the data source
propagate so that the caller decides how to degrade.
"""

from collections.abc import Mapping
from typing import Any

from .data_source import CategoryFilter, EventDataSource, MultiCategoryFilter
from .hooks import PostProcessorRegistry
from .logging_config import get_logger
from .models import FilterSet, StatisticType
from .support import SupportRegistry

logger = get_logger(__name__)


def clamp(value: Any) -> int:
    """Coerce ``value`` to a non-negative int; non-numeric values become 0."""
    if isinstance(value, bool):
        return int(value)
    try:
        return max(0, int(value))
    except (TypeError, ValueError, OverflowError):
        return 0


class StatisticsCalculator:
    """Computes statistic values from the item/category data source."""

    def __init__(
        self,
        data_source: EventDataSource,
        support: SupportRegistry,
        post_processors: PostProcessorRegistry | None = None,
    ):
        self.data_source = data_source
        self.support = support
        self.post_processors = post_processors if post_processors is not None else PostProcessorRegistry()

        self._algorithms = {
            StatisticType.TOTAL_ITEMS: self.count_items,
            StatisticType.ITEMS_IN_CATEGORY: self.count_items,
            StatisticType.ITEMS_IN_MULTIPLE_CATEGORIES: self.count_items,
            StatisticType.TOTAL_TERMS_IN_CATEGORY: self.count_terms,
            StatisticType.TERMS_BY_CATEGORY: self.count_cross_category_terms,
            StatisticType.NUMERIC_FIELD_SUM: self.sum_numeric_field,
        }

    def validate_request(
        self,
        statistic_type: StatisticType | str,
        filters: FilterSet | Mapping[str, Any] | None,
    ) -> tuple[StatisticType, FilterSet] | None:
        """Return the parsed request, or None if it must resolve to 0."""
        if not self.support.has_supported_item_types():
            return None

        parsed_type = StatisticType.parse(statistic_type)
        if parsed_type is None or not self.support.is_supported(parsed_type):
            return None

        filter_set = FilterSet.coerce(filters)
        if filter_set is None or filter_set.temporal_partition is None:
            return None

        return parsed_type, filter_set

    async def calculate(
        self,
        statistic_type: StatisticType | str,
        filters: FilterSet | Mapping[str, Any] | None = None,
    ) -> int:
        """Compute a statistic value.

        Args:
            statistic_type: Statistic type to compute
            filters: FilterSet or mapping; must carry a valid temporal partition

        Returns:
            Non-negative value after post-processing, or 0 for invalid or
            unsupported requests.
        """
        request = self.validate_request(statistic_type, filters)
        if request is None:
            logger.debug("Rejected statistics request %r with filters %r", statistic_type, filters)
            return 0

        parsed_type, filter_set = request
        result = clamp(await self._algorithms[parsed_type](filter_set))
        return clamp(self.post_processors.apply(parsed_type, result, filter_set))

    def _item_types(self) -> list[str]:
        return self.support.supported_item_types()

    async def _resolve_item_filters(
        self, filters: FilterSet
    ) -> tuple[CategoryFilter | None, MultiCategoryFilter | None] | None:
        """Category restriction for item queries; None when a category is unknown."""
        if filters.category and filters.term_id:
            if not await self.data_source.category_exists(filters.category):
                return None
            return (filters.category, filters.term_id), None

        if filters.category_terms:
            for category in filters.category_terms:
                if not await self.data_source.category_exists(category):
                    return None
            return None, filters.category_terms

        return None, None

    async def count_items(self, filters: FilterSet) -> int:
        """Count items in the partition, optionally restricted by category terms.

        A multi-category filter is an AND across categories: an item counts
        only if it carries at least one accepted term in every listed category.
        """
        resolved = await self._resolve_item_filters(filters)
        if resolved is None:
            return 0

        category_filter, multi_category_filter = resolved
        return await self.data_source.count_items(
            self._item_types(),
            filters.temporal_partition,
            category_filter=category_filter,
            multi_category_filter=multi_category_filter,
        )

    async def count_terms(self, filters: FilterSet) -> int:
        """Count terms of one category attached to at least one qualifying item."""
        if not filters.category or not await self.data_source.category_exists(filters.category):
            return 0

        terms = await self.data_source.get_terms(
            filters.category,
            only_non_empty=True,
            item_types=self._item_types(),
        )
        return len(terms)

    async def count_cross_category_terms(self, filters: FilterSet) -> int:
        """Count distinct ``count_category`` terms on items tagged with a ``filter_category`` term.

        Example: with items tagged (A1, B1) and (A1, B2), asking for B terms on
        items tagged A1 gives {B1, B2}, so 2. The temporal partition is not
        applied; every qualifying item takes part.
        """
        count_category = filters.count_category
        filter_category = filters.filter_category
        if not count_category or not filter_category or not filters.term_id:
            return 0

        if not await self.data_source.category_exists(count_category):
            return 0
        if not await self.data_source.category_exists(filter_category):
            return 0

        item_ids = await self.data_source.items_matching_term(filter_category, filters.term_id, self._item_types())

        seen: set[int] = set()
        for item_id in item_ids:
            seen.update(await self.data_source.terms_of_item(item_id, count_category))
        return len(seen)

    async def sum_numeric_field(self, filters: FilterSet) -> int:
        """Sum the per-item numeric field over items matching the item filters."""
        resolved = await self._resolve_item_filters(filters)
        if resolved is None:
            return 0

        category_filter, multi_category_filter = resolved
        item_ids = await self.data_source.find_items(
            self._item_types(),
            filters.temporal_partition,
            category_filter=category_filter,
            multi_category_filter=multi_category_filter,
        )

        total = 0
        for item_id in item_ids:
            total += clamp(await self.data_source.numeric_field_of(item_id))
        return total
