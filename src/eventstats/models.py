"""Data models for statistics requests, pending jobs and regeneration reports."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import FilterValidationError


class StatisticType(str, Enum):
    """Supported aggregation queries."""

    TOTAL_ITEMS = "total_items"
    ITEMS_IN_CATEGORY = "items_in_category"
    ITEMS_IN_MULTIPLE_CATEGORIES = "items_in_multiple_categories"
    TOTAL_TERMS_IN_CATEGORY = "total_terms_in_category"
    TERMS_BY_CATEGORY = "terms_by_category"
    NUMERIC_FIELD_SUM = "numeric_field_sum"

    @classmethod
    def parse(cls, value: Any) -> "StatisticType | None":
        """Return the matching statistic type, or None for unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except (TypeError, ValueError):
            return None


# Statistic types whose values depend on term data
TERM_DEPENDENT_TYPES = frozenset(
    {
        StatisticType.ITEMS_IN_CATEGORY,
        StatisticType.ITEMS_IN_MULTIPLE_CATEGORIES,
        StatisticType.TOTAL_TERMS_IN_CATEGORY,
        StatisticType.TERMS_BY_CATEGORY,
    }
)


class TemporalPartition(str, Enum):
    """Mandatory split of items by time. There is no "all"."""

    UPCOMING = "upcoming"
    PAST = "past"


class FilterSet(BaseModel):
    """Validated filter parameters for one statistics request.

    Recognized combinations:
      - ``category`` + ``term_id``: single-category filter
      - ``category_terms``: multi-category AND filter (category -> term ids)
      - ``count_category`` + ``filter_category`` + ``term_id``: cross-category
      - ``category`` alone: the category whose terms are counted

    ``temporal_partition`` is optional at construction so that callers can
    build and inspect incomplete requests; the calculator rejects any request
    without one.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    temporal_partition: TemporalPartition | None = None
    category: str | None = None
    term_id: int | None = None
    category_terms: dict[str, frozenset[int]] | None = None
    count_category: str | None = None
    filter_category: str | None = None

    @field_validator("category", "count_category", "filter_category", mode="before")
    @classmethod
    def validate_category_name(cls, v):
        """Strip category names; blank names mean "not set"."""
        if v is None:
            return None
        if not isinstance(v, str):
            raise ValueError("Category name must be a string")
        v = v.strip()
        return v or None

    @field_validator("term_id", mode="before")
    @classmethod
    def validate_term_id(cls, v):
        """Term ids are positive integers; 0 means no term selected."""
        if v is None or isinstance(v, bool):
            return None
        try:
            term_id = int(v)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid term id: {v!r}") from None
        if term_id < 0:
            raise ValueError(f"Term id cannot be negative: {term_id}")
        return term_id or None

    @field_validator("category_terms", mode="before")
    @classmethod
    def validate_category_terms(cls, v):
        """Drop categories with no terms; an empty mapping means no filter."""
        if v is None:
            return None
        if not isinstance(v, Mapping):
            raise ValueError("category_terms must be a mapping of category to term ids")

        cleaned: dict[str, frozenset[int]] = {}
        for category, term_ids in v.items():
            if not isinstance(category, str) or not category.strip():
                raise ValueError("category_terms keys must be category names")
            if isinstance(term_ids, (str, bytes)) or not hasattr(term_ids, "__iter__"):
                raise ValueError(f"Terms for {category!r} must be a collection of ids")

            ids = set()
            for term_id in term_ids:
                if isinstance(term_id, bool):
                    raise ValueError(f"Invalid term id in {category!r}: {term_id!r}")
                try:
                    term_id = int(term_id)
                except (TypeError, ValueError):
                    raise ValueError(f"Invalid term id in {category!r}: {term_id!r}") from None
                if term_id < 0:
                    raise ValueError(f"Term id cannot be negative: {term_id}")
                if term_id:
                    ids.add(term_id)
            if ids:
                name = category.strip()
                cleaned[name] = cleaned.get(name, frozenset()) | ids

        return cleaned or None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "FilterSet":
        """Build a FilterSet, raising FilterValidationError on malformed input."""
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            field_name = ".".join(str(p) for p in first.get("loc", ())) or None
            raise FilterValidationError(
                f"Invalid filter set: {first.get('msg', str(e))}",
                field=field_name,
                value=first.get("input"),
            ) from e

    @classmethod
    def coerce(cls, value: "FilterSet | Mapping[str, Any] | None") -> "FilterSet | None":
        """Return a FilterSet for ``value``, or None if it cannot be validated."""
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if not isinstance(value, Mapping):
            return None
        try:
            return cls.from_mapping(value)
        except FilterValidationError:
            return None

    @property
    def partition_value(self) -> str | None:
        """The temporal partition as a plain string."""
        return self.temporal_partition.value if self.temporal_partition else None

    def with_partition(self, partition: TemporalPartition | str) -> "FilterSet":
        """Return a copy of this filter set in another temporal partition."""
        return self.model_copy(update={"temporal_partition": TemporalPartition(partition)})

    def canonical(self) -> dict[str, Any]:
        """Order-independent plain representation used for key hashing."""
        data: dict[str, Any] = {}
        if self.temporal_partition is not None:
            data["temporal_partition"] = self.temporal_partition.value
        if self.category is not None:
            data["category"] = self.category
        if self.term_id is not None:
            data["term_id"] = self.term_id
        if self.category_terms:
            data["category_terms"] = {
                category: sorted(term_ids) for category, term_ids in sorted(self.category_terms.items())
            }
        if self.count_category is not None:
            data["count_category"] = self.count_category
        if self.filter_category is not None:
            data["filter_category"] = self.filter_category
        return dict(sorted(data.items()))


class PlannedStatistic(NamedTuple):
    """One (statistic type, filter set) pair to pre-warm."""

    statistic_type: StatisticType
    filters: FilterSet


@dataclass
class PendingRegenerationJob:
    """The single regeneration pass waiting for its delay to elapse."""

    job_name: str
    scheduled_at: datetime
    run_at: datetime
    reason: str = "change"


@dataclass
class RegenerationFailure:
    """A planned statistic that could not be computed or stored."""

    statistic_type: StatisticType | None
    filters: dict[str, Any]
    error: str
    exception_type: str


@dataclass
class RegenerationReport:
    """Outcome of one regeneration pass."""

    started_at: datetime
    finished_at: datetime | None = None
    planned: int = 0
    computed: int = 0
    failed: int = 0
    failures: list[RegenerationFailure] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def success(self) -> bool:
        return self.failed == 0
