"""TTL cache stores for computed statistics.

This module implements:
1. ``CacheStore``: the async interface the statistics layers depend on
2. ``MemoryCacheStore``: bounded in-process LRU store with per-entry TTL
3. ``DiskCacheStore``: persistent JSON-file store that survives restarts

Stores know nothing about statistics semantics. An entry that is present but
past its expiry is reported as absent and evicted lazily. ``delete_by_prefix``
is a best-effort bulk clear, not a transaction: a reader racing a clear may
still see entries that have not been removed yet.
"""

import asyncio
import hashlib
import json
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from .errors import CacheStoreError, ErrorCode
from .logging_config import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime]


@dataclass
class CacheEntry:
    """A cached statistic value with its absolute expiry."""

    key: str
    value: int
    created_at: datetime
    expires_at: datetime

    @classmethod
    def create(cls, key: str, value: int, ttl_seconds: int, now: datetime) -> "CacheEntry":
        return cls(key=key, value=value, created_at=now, expires_at=now + timedelta(seconds=ttl_seconds))

    def is_expired(self, now: datetime) -> bool:
        """Check if entry has expired."""
        return now >= self.expires_at


@dataclass
class CacheStats:
    """Cache performance statistics."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    entry_count: int = 0
    hit_rate: float = 0.0

    def update_hit_rate(self):
        """Update hit rate calculation."""
        total = self.hits + self.misses
        self.hit_rate = self.hits / total if total > 0 else 0.0


def _validate_ttl(ttl_seconds: int) -> int:
    if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, int) or ttl_seconds < 1:
        raise ValueError(f"ttl_seconds must be a positive integer, got {ttl_seconds!r}")
    return ttl_seconds


class CacheStore(ABC):
    """Key/value storage of non-negative integers with per-entry expiration."""

    @abstractmethod
    async def get(self, key: str) -> int | None:
        """Return the stored value, or None when absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: int, ttl_seconds: int) -> None:
        """Store ``value`` under ``key``, replacing any existing entry."""

    @abstractmethod
    async def delete_by_prefix(self, prefix: str) -> int:
        """Remove every entry whose key starts with ``prefix``. Returns count removed."""

    @abstractmethod
    async def keys(self, prefix: str = "") -> list[str]:
        """List live keys starting with ``prefix``."""

    @abstractmethod
    async def cleanup_expired(self) -> int:
        """Physically remove expired entries. Returns count removed."""

    @abstractmethod
    def get_stats(self) -> CacheStats:
        """Get current cache statistics."""


class MemoryCacheStore(CacheStore):
    """In-process LRU store with TTL expiry."""

    def __init__(self, max_size: int = 10000, clock: Clock | None = None):
        self.max_size = max_size
        self._clock = clock or datetime.now
        self._cache: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = asyncio.Lock()
        self._stats = CacheStats()

    async def get(self, key: str) -> int | None:
        async with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._stats.misses += 1
                self._update_stats()
                return None

            if entry.is_expired(self._clock()):
                del self._cache[key]
                self._stats.misses += 1
                self._stats.evictions += 1
                self._update_stats()
                return None

            # Move to end (most recently used)
            self._cache.move_to_end(key)
            self._stats.hits += 1
            self._update_stats()
            return entry.value

    async def set(self, key: str, value: int, ttl_seconds: int) -> None:
        entry = CacheEntry.create(key, int(value), _validate_ttl(ttl_seconds), self._clock())
        async with self._lock:
            self._cache.pop(key, None)

            while len(self._cache) >= self.max_size:
                self._cache.popitem(last=False)
                self._stats.evictions += 1

            self._cache[key] = entry
            self._update_stats()

    async def delete_by_prefix(self, prefix: str) -> int:
        async with self._lock:
            doomed = [key for key in self._cache if key.startswith(prefix)]
            for key in doomed:
                del self._cache[key]
            self._update_stats()
            return len(doomed)

    async def keys(self, prefix: str = "") -> list[str]:
        now = self._clock()
        async with self._lock:
            return [key for key, entry in self._cache.items() if key.startswith(prefix) and not entry.is_expired(now)]

    async def cleanup_expired(self) -> int:
        now = self._clock()
        async with self._lock:
            expired_keys = [key for key, entry in self._cache.items() if entry.is_expired(now)]
            for key in expired_keys:
                del self._cache[key]
            self._stats.evictions += len(expired_keys)
            self._update_stats()
            return len(expired_keys)

    async def clear(self):
        """Clear all cache entries."""
        async with self._lock:
            self._cache.clear()
            self._stats = CacheStats()

    def _update_stats(self):
        self._stats.entry_count = len(self._cache)
        self._stats.update_hit_rate()

    def get_stats(self) -> CacheStats:
        return self._stats


class DiskCacheStore(CacheStore):
    """Persistent store keeping one JSON file per entry plus an index file.

    I/O failures raise ``CacheStoreError``; callers on the read path treat
    that as a cache miss. Entries that cannot be decoded and malformed index
    records are removed and reported as absent.
    """

    INDEX_FILE = "cache_index.json"

    def __init__(self, cache_dir: str | Path, max_files: int = 10000, clock: Clock | None = None):
        self.cache_dir = Path(cache_dir)
        self.max_files = max_files
        self._clock = clock or datetime.now
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()
        self._stats = CacheStats()
        self._index_file = self.cache_dir / self.INDEX_FILE
        self._index: dict[str, dict[str, Any]] = {}
        self._loaded = False

    async def initialize(self):
        """Load the index from disk. Called lazily by every operation."""
        if self._loaded:
            return
        self._loaded = True
        if not self._index_file.exists():
            return
        try:
            async with aiofiles.open(self._index_file, encoding="utf-8") as f:
                index = json.loads(await f.read())
        except (OSError, ValueError) as e:
            logger.warning("Failed to load cache index %s, starting empty: %s", self._index_file, e)
            index = {}
        if not isinstance(index, dict):
            logger.warning("Cache index %s is not a mapping, starting empty", self._index_file)
            index = {}

        self._index = {file_key: info for file_key, info in index.items() if self._is_valid_record(info)}
        dropped = len(index) - len(self._index)
        if dropped:
            logger.warning("Dropped %d corrupted records from cache index %s", dropped, self._index_file)
        self._update_stats()

    async def get(self, key: str) -> int | None:
        file_key = self._file_key(key)
        async with self._lock:
            await self.initialize()

            entry_info = self._index.get(file_key)
            if entry_info is None:
                self._record_miss()
                return None

            cache_file = self._entry_path(file_key)
            if datetime.fromisoformat(entry_info["expires_at"]) <= self._clock():
                await self._drop(file_key)
                await self._save_index()
                self._stats.evictions += 1
                self._record_miss()
                return None

            try:
                async with aiofiles.open(cache_file, encoding="utf-8") as f:
                    data = json.loads(await f.read())
                value = int(data["value"])
            except FileNotFoundError:
                await self._drop(file_key)
                await self._save_index()
                self._record_miss()
                return None
            except (ValueError, KeyError, TypeError) as e:
                logger.warning("Removing corrupted cache entry %s: %s", key, e)
                await self._drop(file_key)
                await self._save_index()
                self._record_miss()
                return None
            except OSError as e:
                raise CacheStoreError(
                    f"Failed to read cache entry: {e}",
                    key=key,
                    operation="get",
                    error_code=ErrorCode.STORE_UNAVAILABLE,
                ) from e

            self._stats.hits += 1
            self._update_stats()
            return value

    async def set(self, key: str, value: int, ttl_seconds: int) -> None:
        entry = CacheEntry.create(key, int(value), _validate_ttl(ttl_seconds), self._clock())
        file_key = self._file_key(key)
        cache_file = self._entry_path(file_key)

        async with self._lock:
            await self.initialize()
            try:
                async with aiofiles.open(cache_file, "w", encoding="utf-8") as f:
                    await f.write(json.dumps({"key": key, "value": entry.value}))
            except OSError as e:
                raise CacheStoreError(
                    f"Failed to write cache entry: {e}",
                    key=key,
                    operation="set",
                    error_code=ErrorCode.STORE_UNAVAILABLE,
                ) from e

            self._index[file_key] = {
                "key": key,
                "created_at": entry.created_at.isoformat(),
                "expires_at": entry.expires_at.isoformat(),
            }

            if len(self._index) > self.max_files:
                await self._evict_oldest()
            await self._save_index()
            self._update_stats()

    async def delete_by_prefix(self, prefix: str) -> int:
        async with self._lock:
            await self.initialize()
            doomed = [file_key for file_key, info in self._index.items() if info["key"].startswith(prefix)]
            for file_key in doomed:
                await self._drop(file_key)
            if doomed:
                await self._save_index()
            self._update_stats()
            return len(doomed)

    async def keys(self, prefix: str = "") -> list[str]:
        now = self._clock()
        async with self._lock:
            await self.initialize()
            return [
                info["key"]
                for info in self._index.values()
                if info["key"].startswith(prefix) and datetime.fromisoformat(info["expires_at"]) > now
            ]

    async def cleanup_expired(self) -> int:
        now = self._clock()
        async with self._lock:
            await self.initialize()
            expired = [
                file_key
                for file_key, info in self._index.items()
                if datetime.fromisoformat(info["expires_at"]) <= now
            ]
            for file_key in expired:
                await self._drop(file_key)
            if expired:
                await self._save_index()
            self._stats.evictions += len(expired)
            self._update_stats()
            return len(expired)

    def get_stats(self) -> CacheStats:
        return self._stats

    def _is_valid_record(self, info: Any) -> bool:
        """Whether an index record has a string key and comparable timestamps."""
        if not isinstance(info, dict) or not isinstance(info.get("key"), str):
            return False
        try:
            datetime.fromisoformat(info["created_at"])
            expires_at = datetime.fromisoformat(info["expires_at"])
        except (KeyError, TypeError, ValueError):
            return False
        # Naive and aware datetimes cannot be compared
        return (expires_at.tzinfo is None) == (self._clock().tzinfo is None)

    def _file_key(self, key: str) -> str:
        return hashlib.md5(key.encode("utf-8")).hexdigest()

    def _entry_path(self, file_key: str) -> Path:
        return self.cache_dir / f"{file_key}.json"

    async def _drop(self, file_key: str):
        """Remove an entry file and its index record. Caller holds the lock."""
        self._index.pop(file_key, None)
        try:
            await aiofiles.os.remove(str(self._entry_path(file_key)))
        except FileNotFoundError:
            pass
        except OSError as e:
            raise CacheStoreError(f"Failed to remove cache entry: {e}", operation="delete") from e

    async def _save_index(self):
        try:
            async with aiofiles.open(self._index_file, "w", encoding="utf-8") as f:
                await f.write(json.dumps(self._index, indent=2))
        except OSError as e:
            raise CacheStoreError(f"Failed to save cache index: {e}", operation="save_index") from e

    async def _evict_oldest(self):
        """Evict oldest entries down to 80% of the file limit."""
        target_count = int(self.max_files * 0.8)
        oldest_first = sorted(self._index.items(), key=lambda item: item[1]["created_at"])
        for file_key, _ in oldest_first[: len(oldest_first) - target_count]:
            await self._drop(file_key)
            self._stats.evictions += 1

    def _record_miss(self):
        self._stats.misses += 1
        self._update_stats()

    def _update_stats(self):
        self._stats.entry_count = len(self._index)
        self._stats.update_hit_rate()
