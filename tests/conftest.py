"""Shared test fixtures and utilities for eventstats testing.

The ``event_store`` fixture holds fifteen published events split across two
categories, plus a draft and an item of an unsupported type that must never be
counted:

    topic: A1=1, A2=2, A3=3, A4=4 (A4 is never assigned)
    venue: B1=11, B2=12, B3=13

    ids 1-4   (A1, B1)  upcoming: 1, 2   past: 3, 4   attendees 10 each
    ids 5-7   (A1, B2)  upcoming: 5      past: 6, 7   attendees 5 each
    ids 8-9   (A2, B2)  upcoming: 8      past: 9      attendees none / 20
    id  10    (A3, B3)                   past: 10     attendees 7
    ids 11-15 untagged  upcoming: 11, 12 past: 13-15  attendees 1 each
"""

from datetime import datetime, timedelta

import pytest

from eventstats.cache import MemoryCacheStore
from eventstats.config import StatisticsSettings
from eventstats.data_source import InMemoryEventStore, Item
from eventstats.models import StatisticType
from eventstats.scheduler import DeferredScheduler
from eventstats.support import SupportRegistry

NOW = datetime(2026, 6, 1, 12, 0, 0)

TOPIC = "topic"
VENUE = "venue"
A1, A2, A3, A4 = 1, 2, 3, 4
B1, B2, B3 = 11, 12, 13

UPCOMING_TOTAL = 6
PAST_TOTAL = 9
UPCOMING_ATTENDEES = 27
PAST_ATTENDEES = 60


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


class ManualScheduler(DeferredScheduler):
    """Scheduler driven by ``advance()`` instead of a running event loop."""

    def __init__(self):
        self.time = 0.0
        self.jobs = {}
        self.results = []

    def schedule_once(self, job_name, delay_seconds, callback):
        self.jobs[job_name] = (self.time + delay_seconds, callback)

    def is_scheduled(self, job_name):
        return job_name in self.jobs

    def cancel(self, job_name):
        return self.jobs.pop(job_name, None) is not None

    def next_run_at(self, job_name):
        job = self.jobs.get(job_name)
        return job[0] if job else None

    async def advance(self, seconds: float):
        """Move time forward and run every job that became due."""
        self.time += seconds
        due = sorted((run_at, name) for name, (run_at, _) in self.jobs.items() if run_at <= self.time)
        for _, name in due:
            _, callback = self.jobs.pop(name)
            self.results.append(await callback())


def _event(item_id, days, terms=None, attendees=None, **kwargs) -> Item:
    return Item(
        id=item_id,
        starts_at=NOW + timedelta(days=days),
        terms={category: set(ids) for category, ids in (terms or {}).items()},
        numeric_field=attendees,
        **kwargs,
    )


def build_event_store(clock=None) -> InMemoryEventStore:
    store = InMemoryEventStore(clock=clock or FakeClock())
    store.add_category(TOPIC, [(A1, "A1"), (A2, "A2"), (A3, "A3"), (A4, "A4")])
    store.add_category(VENUE, [(B1, "B1"), (B2, "B2"), (B3, "B3")])

    for item_id, days in ((1, 3), (2, 10), (3, -3), (4, -10)):
        store.add_item(_event(item_id, days, {TOPIC: [A1], VENUE: [B1]}, attendees=10))
    for item_id, days in ((5, 4), (6, -4), (7, -20)):
        store.add_item(_event(item_id, days, {TOPIC: [A1], VENUE: [B2]}, attendees=5))
    store.add_item(_event(8, 5, {TOPIC: [A2], VENUE: [B2]}))
    store.add_item(_event(9, -5, {TOPIC: [A2], VENUE: [B2]}, attendees=20))
    store.add_item(_event(10, -6, {TOPIC: [A3], VENUE: [B3]}, attendees=7))
    for item_id, days in ((11, 1), (12, 2), (13, -1), (14, -2), (15, -30)):
        store.add_item(_event(item_id, days, attendees=1))

    # Never counted
    store.add_item(_event(16, -3, {TOPIC: [A1], VENUE: [B3]}, attendees=100, status="draft"))
    store.add_item(_event(17, -3, {TOPIC: [A3]}, attendees=100, item_type="page"))
    return store


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def event_store(clock) -> InMemoryEventStore:
    """Provide the fifteen-event fixture store."""
    return build_event_store(clock)


@pytest.fixture
def full_support() -> SupportRegistry:
    """Provide a support registry with every statistic type enabled for events."""
    support = SupportRegistry()
    support.register_item_type("event", {statistic_type: True for statistic_type in StatisticType})
    return support


@pytest.fixture
def default_support() -> SupportRegistry:
    """Provide a support registry with the default config for events."""
    support = SupportRegistry()
    support.register_item_type("event")
    return support


@pytest.fixture
def memory_store(clock) -> MemoryCacheStore:
    return MemoryCacheStore(clock=clock)


@pytest.fixture
def settings() -> StatisticsSettings:
    return StatisticsSettings()


@pytest.fixture
def manual_scheduler() -> ManualScheduler:
    return ManualScheduler()
