"""Turning presentation-layer attributes into statistics requests.

The calculator never defaults a missing temporal partition; this module is
where defaulting happens. Presentation attributes use the camelCase names the
editor stores.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .models import FilterSet, StatisticType, TemporalPartition

DEFAULT_PARTITION = TemporalPartition.PAST


@dataclass
class Affixes:
    """Text shown before and after a rendered value."""

    prefix: str = ""
    suffix: str = ""


def resolve_partition(statistic_type: StatisticType, requested: Any) -> TemporalPartition:
    """Partition to query: numeric sums are always past, invalid values default to past."""
    if statistic_type is StatisticType.NUMERIC_FIELD_SUM:
        return TemporalPartition.PAST
    try:
        return TemporalPartition(requested)
    except (TypeError, ValueError):
        return DEFAULT_PARTITION


def build_filter_set(attributes: Mapping[str, Any]) -> tuple[StatisticType | None, FilterSet | None]:
    """Build a validated request from presentation attributes.

    Returns:
        (statistic_type, filters), or (None, None) when the statistic type is
        unknown or the attributes cannot form a valid filter set.
    """
    statistic_type = StatisticType.parse(attributes.get("statisticType", StatisticType.TOTAL_ITEMS.value))
    if statistic_type is None:
        return None, None

    filters: dict[str, Any] = {
        "temporal_partition": resolve_partition(statistic_type, attributes.get("eventQuery")),
    }

    try:
        selected_term = int(attributes.get("selectedTerm") or 0)
    except (TypeError, ValueError):
        selected_term = 0
    if selected_term > 0:
        filters["term_id"] = selected_term

    if attributes.get("selectedTaxonomy"):
        filters["category"] = attributes["selectedTaxonomy"]
    if attributes.get("countTaxonomy"):
        filters["count_category"] = attributes["countTaxonomy"]
    if attributes.get("filterTaxonomy"):
        filters["filter_category"] = attributes["filterTaxonomy"]

    if statistic_type is StatisticType.ITEMS_IN_MULTIPLE_CATEGORIES:
        selected = attributes.get("selectedTaxonomyTerms") or {}
        if isinstance(selected, Mapping):
            category_terms = {
                category: term_ids
                for category, term_ids in selected.items()
                if term_ids and isinstance(term_ids, (list, tuple, set, frozenset))
            }
            if category_terms:
                filters["category_terms"] = category_terms

    filter_set = FilterSet.coerce(filters)
    if filter_set is None:
        return None, None
    return statistic_type, filter_set


def should_render(value: int) -> bool:
    """Zero means "nothing to show"."""
    return value > 0


def choose_label(value: int, singular: str, plural: str) -> str:
    return singular if value == 1 else plural


def choose_affixes(value: int, threshold: int, default: Affixes, conditional: Affixes) -> Affixes:
    """Use the conditional prefix/suffix once ``value`` exceeds ``threshold``.

    Empty conditional parts fall back to the defaults individually.
    """
    if value <= threshold:
        return default
    return Affixes(
        prefix=conditional.prefix or default.prefix,
        suffix=conditional.suffix or default.suffix,
    )
