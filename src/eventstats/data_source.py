"""Item/category data access used by the aggregation algorithms.

``EventDataSource`` is the boundary to whatever persists items and their
category terms. ``InMemoryEventStore`` is a complete reference implementation
for tests and for embedders whose data already lives in memory.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Collection, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime

from .models import TemporalPartition

CategoryFilter = tuple[str, int]
MultiCategoryFilter = Mapping[str, Collection[int]]

PUBLISHED_STATUS = "publish"


@dataclass(frozen=True)
class Term:
    """A value within a category."""

    id: int
    category: str
    name: str = ""


@dataclass
class Item:
    """A schedulable item (typically an event)."""

    id: int
    starts_at: datetime
    ends_at: datetime | None = None
    item_type: str = "event"
    status: str = PUBLISHED_STATUS
    terms: dict[str, set[int]] = field(default_factory=dict)
    numeric_field: int | None = None

    def partition_at(self, now: datetime) -> TemporalPartition:
        """Upcoming until the item has ended, past afterwards."""
        end = self.ends_at or self.starts_at
        return TemporalPartition.UPCOMING if end >= now else TemporalPartition.PAST


class EventDataSource(ABC):
    """Read-only queries the calculator and planner need."""

    @abstractmethod
    async def count_items(
        self,
        item_types: Collection[str],
        temporal_partition: TemporalPartition | None,
        *,
        category_filter: CategoryFilter | None = None,
        multi_category_filter: MultiCategoryFilter | None = None,
    ) -> int:
        """Count published items matching the partition and category filters."""

    @abstractmethod
    async def find_items(
        self,
        item_types: Collection[str],
        temporal_partition: TemporalPartition | None,
        *,
        category_filter: CategoryFilter | None = None,
        multi_category_filter: MultiCategoryFilter | None = None,
    ) -> list[int]:
        """Ids of published items matching the partition and category filters."""

    @abstractmethod
    async def get_terms(
        self,
        category: str,
        *,
        only_non_empty: bool,
        item_types: Collection[str] | None = None,
        limit: int | None = None,
    ) -> list[Term]:
        """Terms of ``category``; with ``only_non_empty`` only terms on a published item."""

    @abstractmethod
    async def items_matching_term(self, category: str, term_id: int, item_types: Collection[str]) -> list[int]:
        """Ids of published items carrying ``term_id`` in ``category``, in any partition."""

    @abstractmethod
    async def terms_of_item(self, item_id: int, category: str) -> list[int]:
        """Term ids ``item_id`` carries in ``category``."""

    @abstractmethod
    async def numeric_field_of(self, item_id: int) -> int | None:
        """The summed numeric attribute of ``item_id``, or None when unset."""

    @abstractmethod
    async def category_exists(self, category: str) -> bool:
        """Whether ``category`` is a registered category."""

    @abstractmethod
    async def get_categories(self, exclude: Collection[str] = ()) -> list[str]:
        """Registered categories, minus ``exclude``, in a stable order."""


class InMemoryEventStore(EventDataSource):
    """Data source backed by plain dicts."""

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or datetime.now
        self._items: dict[int, Item] = {}
        self._categories: dict[str, dict[int, Term]] = {}

    # Mutation helpers

    def add_category(self, category: str, terms: Iterable[tuple[int, str]] = ()) -> None:
        self._categories.setdefault(category, {})
        for term_id, name in terms:
            self.add_term(category, term_id, name)

    def add_term(self, category: str, term_id: int, name: str = "") -> Term:
        term = Term(id=term_id, category=category, name=name)
        self._categories.setdefault(category, {})[term_id] = term
        return term

    def remove_category(self, category: str) -> None:
        self._categories.pop(category, None)
        for item in self._items.values():
            item.terms.pop(category, None)

    def add_item(self, item: Item) -> Item:
        for category, term_ids in item.terms.items():
            known = self._categories.setdefault(category, {})
            for term_id in term_ids:
                known.setdefault(term_id, Term(id=term_id, category=category))
        self._items[item.id] = item
        return item

    def remove_item(self, item_id: int) -> None:
        self._items.pop(item_id, None)

    def get_item(self, item_id: int) -> Item | None:
        return self._items.get(item_id)

    # EventDataSource

    async def count_items(
        self,
        item_types,
        temporal_partition,
        *,
        category_filter=None,
        multi_category_filter=None,
    ) -> int:
        return len(
            await self.find_items(
                item_types,
                temporal_partition,
                category_filter=category_filter,
                multi_category_filter=multi_category_filter,
            )
        )

    async def find_items(
        self,
        item_types,
        temporal_partition,
        *,
        category_filter=None,
        multi_category_filter=None,
    ) -> list[int]:
        now = self._clock()
        matches = []
        for item in self._published(item_types):
            if temporal_partition is not None and item.partition_at(now) != TemporalPartition(temporal_partition):
                continue
            if category_filter is not None:
                category, term_id = category_filter
                if term_id not in item.terms.get(category, ()):
                    continue
            if multi_category_filter:
                # AND across categories, OR within each category's term set
                if not all(item.terms.get(category, set()) & set(term_ids)
                           for category, term_ids in multi_category_filter.items()):
                    continue
            matches.append(item.id)
        return matches

    async def get_terms(self, category, *, only_non_empty, item_types=None, limit=None) -> list[Term]:
        terms = list(self._categories.get(category, {}).values())
        if only_non_empty:
            used = set()
            for item in self._published(item_types):
                used.update(item.terms.get(category, ()))
            terms = [term for term in terms if term.id in used]
        return terms[:limit] if limit is not None else terms

    async def items_matching_term(self, category, term_id, item_types) -> list[int]:
        return [item.id for item in self._published(item_types) if term_id in item.terms.get(category, ())]

    async def terms_of_item(self, item_id, category) -> list[int]:
        item = self._items.get(item_id)
        if item is None:
            return []
        return sorted(item.terms.get(category, ()))

    async def numeric_field_of(self, item_id) -> int | None:
        item = self._items.get(item_id)
        return item.numeric_field if item else None

    async def category_exists(self, category) -> bool:
        return category in self._categories

    async def get_categories(self, exclude=()) -> list[str]:
        return [category for category in self._categories if category not in exclude]

    def _published(self, item_types: Collection[str] | None) -> Iterable[Item]:
        for item in self._items.values():
            if item.status != PUBLISHED_STATUS:
                continue
            if item_types is not None and item.item_type not in item_types:
                continue
            yield item
