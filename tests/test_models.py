"""Tests for models.py - request filter validation and report models."""

from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from eventstats.errors import ErrorCode, FilterValidationError
from eventstats.models import (
    FilterSet,
    RegenerationReport,
    StatisticType,
    TemporalPartition,
)


class TestStatisticType:
    def test_parse_known_values(self):
        assert StatisticType.parse("total_items") is StatisticType.TOTAL_ITEMS
        assert StatisticType.parse(StatisticType.TERMS_BY_CATEGORY) is StatisticType.TERMS_BY_CATEGORY

    def test_parse_unknown_values(self):
        assert StatisticType.parse("average_items") is None
        assert StatisticType.parse(None) is None
        assert StatisticType.parse(["total_items"]) is None


class TestFilterSet:
    """Test FilterSet validation and normalization."""

    def test_partition_is_parsed(self):
        filters = FilterSet(temporal_partition="upcoming")
        assert filters.temporal_partition is TemporalPartition.UPCOMING
        assert filters.partition_value == "upcoming"

    def test_partition_is_optional_at_construction(self):
        assert FilterSet().temporal_partition is None

    def test_invalid_partition_raises(self):
        with pytest.raises(FilterValidationError) as exc_info:
            FilterSet.from_mapping({"temporal_partition": "all"})

        assert exc_info.value.error_code == ErrorCode.INVALID_FILTER_SET
        assert exc_info.value.context["field"] == "temporal_partition"

    def test_term_id_normalization(self):
        assert FilterSet(term_id="5").term_id == 5
        assert FilterSet(term_id=0).term_id is None
        assert FilterSet(term_id=None).term_id is None

        with pytest.raises(ValidationError):
            FilterSet(term_id=-3)
        with pytest.raises(ValidationError):
            FilterSet(term_id="five")

    def test_category_names_are_stripped(self):
        filters = FilterSet(category="  topic ", count_category="", filter_category="venue")
        assert filters.category == "topic"
        assert filters.count_category is None
        assert filters.filter_category == "venue"

    def test_category_terms_drop_empty_sets(self):
        filters = FilterSet(category_terms={"topic": [1, "2"], "venue": [], "series": [0]})
        assert filters.category_terms == {"topic": frozenset({1, 2})}

        assert FilterSet(category_terms={"topic": []}).category_terms is None

    def test_category_terms_merge_names_that_strip_alike(self):
        filters = FilterSet(category_terms={"topic": [1], " topic ": [2, 3]})
        assert filters.category_terms == {"topic": frozenset({1, 2, 3})}

    def test_category_terms_reject_malformed_values(self):
        with pytest.raises(ValidationError):
            FilterSet(category_terms={"topic": "1,2"})
        with pytest.raises(ValidationError):
            FilterSet(category_terms={"topic": [1, "x"]})
        with pytest.raises(ValidationError):
            FilterSet(category_terms=[("topic", [1])])

    def test_unknown_fields_are_rejected(self):
        with pytest.raises(FilterValidationError):
            FilterSet.from_mapping({"temporal_partition": "past", "order": "desc"})

    def test_filter_set_is_frozen(self):
        filters = FilterSet(temporal_partition="past")
        with pytest.raises(ValidationError):
            filters.category = "topic"

    def test_coerce(self):
        existing = FilterSet(temporal_partition="past")

        assert FilterSet.coerce(existing) is existing
        assert FilterSet.coerce(None) == FilterSet()
        assert FilterSet.coerce({"temporal_partition": "upcoming"}).temporal_partition is TemporalPartition.UPCOMING
        assert FilterSet.coerce({"temporal_partition": "sometime"}) is None
        assert FilterSet.coerce("past") is None

    def test_with_partition(self):
        filters = FilterSet(category="topic", term_id=1, temporal_partition="upcoming")
        past = filters.with_partition("past")

        assert past.temporal_partition is TemporalPartition.PAST
        assert past.category == "topic"
        assert filters.temporal_partition is TemporalPartition.UPCOMING

    def test_canonical_is_order_independent(self):
        first = FilterSet(category_terms={"topic": [2, 1], "venue": [11]}, temporal_partition="past")
        second = FilterSet(category_terms={"venue": [11], "topic": [1, 2]}, temporal_partition="past")

        assert first.canonical() == second.canonical()
        assert list(first.canonical()["category_terms"]) == ["topic", "venue"]
        assert first.canonical()["category_terms"]["topic"] == [1, 2]

    def test_canonical_omits_unset_fields(self):
        assert FilterSet(temporal_partition="past").canonical() == {"temporal_partition": "past"}


class TestRegenerationReport:
    def test_duration_and_success(self):
        started = datetime(2026, 6, 1, 12, 0, 0)
        report = RegenerationReport(started_at=started)

        assert report.duration_seconds == 0.0
        assert report.success is True

        report.finished_at = started + timedelta(seconds=2.5)
        report.failed = 1
        assert report.duration_seconds == 2.5
        assert report.success is False
