"""Tests for requests.py - presentation attributes to statistics requests."""

import pytest

from eventstats.models import FilterSet, StatisticType, TemporalPartition
from eventstats.requests import (
    Affixes,
    build_filter_set,
    choose_affixes,
    choose_label,
    resolve_partition,
    should_render,
)


class TestResolvePartition:
    @pytest.mark.parametrize(
        "statistic_type,requested,expected",
        [
            (StatisticType.TOTAL_ITEMS, "upcoming", TemporalPartition.UPCOMING),
            (StatisticType.TOTAL_ITEMS, "past", TemporalPartition.PAST),
            (StatisticType.TOTAL_ITEMS, None, TemporalPartition.PAST),
            (StatisticType.TOTAL_ITEMS, "all", TemporalPartition.PAST),
            (StatisticType.NUMERIC_FIELD_SUM, "upcoming", TemporalPartition.PAST),
        ],
    )
    def test_resolve_partition(self, statistic_type, requested, expected):
        assert resolve_partition(statistic_type, requested) is expected


class TestBuildFilterSet:
    def test_defaults(self):
        statistic_type, filters = build_filter_set({})

        assert statistic_type is StatisticType.TOTAL_ITEMS
        assert filters == FilterSet(temporal_partition="past")

    def test_single_category(self):
        statistic_type, filters = build_filter_set(
            {
                "statisticType": "items_in_category",
                "eventQuery": "upcoming",
                "selectedTaxonomy": "topic",
                "selectedTerm": 3,
            }
        )

        assert statistic_type is StatisticType.ITEMS_IN_CATEGORY
        assert filters == FilterSet(category="topic", term_id=3, temporal_partition="upcoming")

    def test_cross_category(self):
        _, filters = build_filter_set(
            {
                "statisticType": "terms_by_category",
                "countTaxonomy": "venue",
                "filterTaxonomy": "topic",
                "selectedTerm": 1,
            }
        )

        assert filters.count_category == "venue"
        assert filters.filter_category == "topic"
        assert filters.term_id == 1

    def test_numeric_sum_is_always_past(self):
        _, filters = build_filter_set({"statisticType": "numeric_field_sum", "eventQuery": "upcoming"})
        assert filters.temporal_partition is TemporalPartition.PAST

    def test_multiple_categories(self):
        _, filters = build_filter_set(
            {
                "statisticType": "items_in_multiple_categories",
                "selectedTaxonomyTerms": {"topic": [1, 2], "venue": [], "series": "oops"},
            }
        )
        assert filters.category_terms == {"topic": frozenset({1, 2})}

    def test_category_terms_ignored_for_other_types(self):
        _, filters = build_filter_set({"statisticType": "total_items", "selectedTaxonomyTerms": {"topic": [1]}})
        assert filters.category_terms is None

    def test_unknown_statistic_type(self):
        assert build_filter_set({"statisticType": "median_items"}) == (None, None)

    @pytest.mark.parametrize("selected_term", ["latest", None, "", 0, -4, [3]])
    def test_unusable_selected_term_is_dropped(self, selected_term):
        statistic_type, filters = build_filter_set({"selectedTerm": selected_term, "selectedTaxonomy": "topic"})

        assert statistic_type is StatisticType.TOTAL_ITEMS
        assert filters == FilterSet(category="topic", temporal_partition="past")

    def test_numeric_string_selected_term(self):
        _, filters = build_filter_set({"statisticType": "items_in_category", "selectedTerm": "7"})
        assert filters.term_id == 7

    def test_invalid_attributes(self):
        attributes = {"statisticType": "items_in_multiple_categories", "selectedTaxonomyTerms": {"topic": [1, "x"]}}
        assert build_filter_set(attributes) == (None, None)


class TestPresentationHelpers:
    def test_should_render(self):
        assert should_render(1) is True
        assert should_render(0) is False

    def test_choose_label(self):
        assert choose_label(1, "Event", "Events") == "Event"
        assert choose_label(0, "Event", "Events") == "Events"
        assert choose_label(12, "Event", "Events") == "Events"

    def test_choose_affixes(self):
        default = Affixes(prefix="", suffix="events")
        conditional = Affixes(prefix="Over", suffix="")

        assert choose_affixes(10, 10, default, conditional) == default
        assert choose_affixes(11, 10, default, conditional) == Affixes(prefix="Over", suffix="events")
