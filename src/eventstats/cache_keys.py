"""Cache key derivation for statistics requests.

Key format::

    {namespace}:{statistic_type}:{temporal_partition}:{md5 of canonical filters}

The temporal partition is written unhashed so that upcoming and past results
can never share an entry, and so that raw keys stay readable for debugging.
The hash covers the full canonical filter set (partition included), which
keeps keys unique across every other filter combination.
"""

import hashlib
import json

from .models import FilterSet, StatisticType

DEFAULT_NAMESPACE = "eventstats"
KEY_SEPARATOR = ":"


def namespace_prefix(namespace: str = DEFAULT_NAMESPACE) -> str:
    """Prefix shared by every key in ``namespace``."""
    return f"{namespace}{KEY_SEPARATOR}"


def hash_filters(filters: FilterSet) -> str:
    """Deterministic content hash of a filter set."""
    filters_str = json.dumps(filters.canonical(), sort_keys=True, separators=(",", ":"))
    return hashlib.md5(filters_str.encode("utf-8")).hexdigest()


def derive_cache_key(
    statistic_type: StatisticType,
    filters: FilterSet,
    namespace: str = DEFAULT_NAMESPACE,
) -> str:
    """Derive the cache key for a validated request.

    Callers must reject requests without a valid temporal partition before
    calling this; a missing partition simply leaves its segment out.
    """
    key_parts = [namespace, StatisticType(statistic_type).value]

    if filters.temporal_partition is not None:
        key_parts.append(filters.temporal_partition.value)

    key_parts.append(hash_filters(filters))
    return KEY_SEPARATOR.join(key_parts)
