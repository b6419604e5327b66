"""Cached aggregate statistics over scheduled items and their category terms.

Statistics are computed on demand, cached with a TTL, cleared whenever the
underlying data changes and regenerated in one debounced background pass.
"""

from .aggregation import StatisticsCalculator, clamp
from .cache import CacheStats, CacheStore, DiskCacheStore, MemoryCacheStore
from .cache_keys import DEFAULT_NAMESPACE, derive_cache_key, namespace_prefix
from .config import StatisticsSettings
from .data_source import EventDataSource, InMemoryEventStore, Item, Term
from .errors import (
    CacheStoreError,
    ConfigurationError,
    ErrorCode,
    FilterValidationError,
    StatisticsError,
)
from .hooks import PostProcessorRegistry
from .invalidation import (
    REGENERATION_JOB,
    ChangeListener,
    InvalidationCoordinator,
    PendingJobMarker,
)
from .logging_config import configure_logging, get_logger
from .models import (
    FilterSet,
    PendingRegenerationJob,
    PlannedStatistic,
    RegenerationFailure,
    RegenerationReport,
    StatisticType,
    TemporalPartition,
)
from .regeneration import RegenerationPlanner, RegenerationRunner
from .requests import Affixes, build_filter_set, choose_affixes, choose_label, should_render
from .scheduler import AsyncioScheduler, DeferredScheduler
from .service import StatisticsService, create_store
from .statistics import CachedStatistics
from .support import DEFAULT_SUPPORT_CONFIG, SupportRegistry

__version__ = "0.1.0"

__all__ = [
    # Service
    "StatisticsService",
    "create_store",
    # Models
    "FilterSet",
    "StatisticType",
    "TemporalPartition",
    "PlannedStatistic",
    "PendingRegenerationJob",
    "RegenerationFailure",
    "RegenerationReport",
    # Computation
    "StatisticsCalculator",
    "CachedStatistics",
    "PostProcessorRegistry",
    "SupportRegistry",
    "DEFAULT_SUPPORT_CONFIG",
    "clamp",
    # Data
    "EventDataSource",
    "InMemoryEventStore",
    "Item",
    "Term",
    # Cache
    "CacheStore",
    "CacheStats",
    "MemoryCacheStore",
    "DiskCacheStore",
    "DEFAULT_NAMESPACE",
    "derive_cache_key",
    "namespace_prefix",
    # Invalidation and regeneration
    "InvalidationCoordinator",
    "ChangeListener",
    "PendingJobMarker",
    "REGENERATION_JOB",
    "RegenerationPlanner",
    "RegenerationRunner",
    "DeferredScheduler",
    "AsyncioScheduler",
    # Requests
    "Affixes",
    "build_filter_set",
    "choose_affixes",
    "choose_label",
    "should_render",
    # Configuration and errors
    "StatisticsSettings",
    "configure_logging",
    "get_logger",
    "StatisticsError",
    "FilterValidationError",
    "CacheStoreError",
    "ConfigurationError",
    "ErrorCode",
]
