"""Cache invalidation and debounced regeneration scheduling.

Every change signal clears the whole statistics namespace immediately, then
arms at most one regeneration job. Signals that arrive while a job is pending
only clear the cache; the pending job picks up their changes when it fires.
Reads in between see a cold cache and compute synchronously.

At-most-one-pending is guaranteed within one process only. Two processes
sharing a store may each schedule a pass; the duplicate pass is harmless
because every write replaces a whole entry.
"""

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from .cache import CacheStore
from .cache_keys import namespace_prefix
from .config import StatisticsSettings
from .data_source import PUBLISHED_STATUS, EventDataSource
from .errors import CacheStoreError
from .logging_config import get_logger
from .models import TERM_DEPENDENT_TYPES, PendingRegenerationJob
from .scheduler import DeferredScheduler
from .support import SupportRegistry

logger = get_logger(__name__)

REGENERATION_JOB = "eventstats_regenerate_cache"


class PendingJobMarker:
    """Records the single pending regeneration job.

    The coordinator arms it when scheduling; the regeneration runner clears it
    as the first step of a pass, so a signal arriving mid-pass schedules a
    fresh job instead of being absorbed by the running one.
    """

    def __init__(self):
        self._job: PendingRegenerationJob | None = None

    @property
    def is_armed(self) -> bool:
        return self._job is not None

    @property
    def current(self) -> PendingRegenerationJob | None:
        return self._job

    def arm(self, job: PendingRegenerationJob) -> None:
        self._job = job

    def clear(self) -> PendingRegenerationJob | None:
        job, self._job = self._job, None
        return job


class InvalidationCoordinator:
    """Clears stale statistics and schedules one debounced regeneration pass."""

    def __init__(
        self,
        store: CacheStore,
        scheduler: DeferredScheduler,
        regenerate: Callable[[], Awaitable[object]],
        settings: StatisticsSettings | None = None,
        marker: PendingJobMarker | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.settings = settings if settings is not None else StatisticsSettings()
        self.marker = marker if marker is not None else PendingJobMarker()
        self._regenerate = regenerate
        self._clock = clock or datetime.now

    def has_pending_job(self) -> bool:
        return self.marker.is_armed or self.scheduler.is_scheduled(REGENERATION_JOB)

    async def clear_cache(self) -> int:
        """Delete every entry in the namespace. Store failures are logged, not raised."""
        try:
            removed = await self.store.delete_by_prefix(namespace_prefix(self.settings.namespace))
        except CacheStoreError as e:
            logger.warning("Failed to clear statistics cache: %s", e)
            return 0
        logger.info("Cleared %d cached statistics", removed)
        return removed

    async def on_change_signal(self, reason: str = "change") -> bool:
        """React to a change in the underlying data.

        Returns:
            True if this signal scheduled the regeneration job, False if it was
            coalesced into one already pending.
        """
        await self.clear_cache()
        return self._schedule(self.settings.regeneration_delay_seconds, reason)

    def schedule_initial_warmup(self) -> bool:
        """Schedule a first regeneration pass shortly after activation."""
        return self._schedule(self.settings.activation_delay_seconds, "activation")

    async def shutdown(self) -> None:
        """Clear the namespace and drop any pending regeneration."""
        await self.clear_cache()
        self.scheduler.cancel(REGENERATION_JOB)
        self.marker.clear()

    def _schedule(self, delay_seconds: float, reason: str) -> bool:
        if self.has_pending_job():
            logger.debug("Regeneration already pending, coalescing %s signal", reason)
            return False

        now = self._clock()
        self.scheduler.schedule_once(REGENERATION_JOB, delay_seconds, self._regenerate)
        self.marker.arm(
            PendingRegenerationJob(
                job_name=REGENERATION_JOB,
                scheduled_at=now,
                run_at=now + timedelta(seconds=delay_seconds),
                reason=reason,
            )
        )
        logger.info("Scheduled statistics regeneration in %ss (%s)", delay_seconds, reason)
        return True


class ChangeListener:
    """Decides which data changes are relevant and forwards them as signals.

    Embedders call these from whatever observes their item store. Each method
    returns True when a change signal was raised.
    """

    def __init__(
        self,
        coordinator: InvalidationCoordinator,
        support: SupportRegistry,
        data_source: EventDataSource,
        settings: StatisticsSettings | None = None,
    ):
        self.coordinator = coordinator
        self.support = support
        self.data_source = data_source
        self.settings = settings if settings is not None else StatisticsSettings()

    async def on_status_change(self, item_type: str, new_status: str, old_status: str) -> bool:
        """An item moved into or out of the published state."""
        if item_type not in self.support:
            return False
        if new_status == old_status or PUBLISHED_STATUS not in (new_status, old_status):
            return False
        await self.coordinator.on_change_signal(f"status {old_status} -> {new_status}")
        return True

    async def on_field_change(self, item_type: str, item_status: str, field_name: str) -> bool:
        """A per-item field was added, updated or deleted."""
        if field_name != self.settings.numeric_field_name:
            return False
        if not self._is_supported_item(item_type, item_status):
            return False
        await self.coordinator.on_change_signal(f"field {field_name}")
        return True

    async def on_term_change(self, category: str) -> bool:
        """A term was created, edited or deleted in ``category``."""
        enabled = set(self.support.supported_statistic_types())
        if not enabled & TERM_DEPENDENT_TYPES:
            return False

        categories = await self.data_source.get_categories(exclude=self.settings.excluded_categories)
        if category not in categories:
            return False
        await self.coordinator.on_change_signal(f"terms of {category}")
        return True

    async def on_term_assignment(self, item_type: str, item_status: str) -> bool:
        """Terms were assigned to or removed from an item."""
        if not self._is_supported_item(item_type, item_status):
            return False
        await self.coordinator.on_change_signal("term assignment")
        return True

    def _is_supported_item(self, item_type: str, item_status: str) -> bool:
        return item_type in self.support and item_status == PUBLISHED_STATUS
