"""Typed cache for everything governed by a TTL.

Features:
- Namespaced hierarchical keys ("versions:gitlab.com/group/project")
- TTL checking with stale fallback when a refresh fails
- Wildcard invalidation within a namespace
- Statistics and size estimation
- Durable persistence through a SnapshotStore, written by a background task

Contract:
- get() surfaces fetcher errors unless allow_stale finds an expired entry
- set(), invalidate(), clear() and prune() never raise
- Persistence failures are logged and counted, never raised
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Sequence
from typing import Any
from typing import TypeVar

from tenacity import AsyncRetrying
from tenacity import stop_after_attempt
from tenacity import wait_exponential

from component_library.storage.snapshot_store import SnapshotStore

from .models import CACHE_SCHEMA_VERSION
from .models import CacheCounters
from .models import CacheEntry
from .models import CacheGetResult
from .models import CacheNamespace
from .models import CacheStats
from .models import PersistentSnapshot
from .models import SnapshotEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 3600.0
VERSION_TTL_MULTIPLIER = 4
TYPED_CACHE_STORAGE_KEY = "typed-cache"


class TypedCache:
    """Hierarchical key/value cache with TTLs and durable snapshots."""

    def __init__(
        self,
        storage: SnapshotStore | None = None,
        *,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        version_ttl: float | None = None,
        storage_key: str = TYPED_CACHE_STORAGE_KEY,
        save_attempts: int = 3,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            storage: Durable snapshot store; None keeps the cache memory-only
            default_ttl: TTL in seconds for component, catalog and source entries
            version_ttl: TTL in seconds for version entries (default: 4x default_ttl)
            storage_key: Logical key the snapshot is stored under
            save_attempts: Attempts per background save before counting a failure
            clock: Time source in seconds, injectable for tests
        """
        self._entries: dict[str, CacheEntry] = {}
        self._counters = CacheCounters()
        self._storage = storage
        self._storage_key = storage_key
        self._save_attempts = max(1, save_attempts)
        self._clock = clock
        self.default_ttl = default_ttl
        self.version_ttl = version_ttl if version_ttl is not None else default_ttl * VERSION_TTL_MULTIPLIER

        self._save_requested = False
        self._writer_task: asyncio.Task[None] | None = None
        self.persist_failures = 0

    @property
    def persistence_enabled(self) -> bool:
        return self._storage is not None

    # --- Keys and TTLs ---

    @staticmethod
    def build_key(namespace: CacheNamespace, key_parts: Sequence[str]) -> str:
        """Build "namespace:part1/part2" keys."""
        return f"{namespace.value}:{'/'.join(key_parts)}"

    def default_ttl_for(self, namespace: CacheNamespace) -> float:
        if namespace is CacheNamespace.VERSIONS:
            return self.version_ttl
        return self.default_ttl

    # --- Reads ---

    async def get(
        self,
        namespace: CacheNamespace,
        key_parts: Sequence[str],
        fetcher: Callable[[], Awaitable[T]],
        ttl: float | None = None,
        *,
        allow_stale: bool = False,
        skip_cache: bool = False,
    ) -> CacheGetResult[T]:
        """Get data from cache, fetching on miss or expiry.

        Args:
            namespace: Cache namespace
            key_parts: Key parts joined under the namespace
            fetcher: Async producer called on miss, expiry or skip_cache
            ttl: TTL in seconds (defaults by namespace)
            allow_stale: Serve an expired entry if the fetcher fails
            skip_cache: Always call the fetcher

        Returns:
            Cached or fetched data with provenance

        Raises:
            Whatever the fetcher raised, unless a stale entry was served
        """
        cache_key = self.build_key(namespace, key_parts)
        effective_ttl = ttl if ttl is not None else self.default_ttl_for(namespace)
        now = self._clock()

        entry = None if skip_cache else self._entries.get(cache_key)
        if entry is not None and not entry.is_expired(now):
            self._counters.total_hits += 1
            return CacheGetResult(data=entry.data, from_cache=True, is_stale=False, age=entry.age(now))

        self._counters.total_misses += 1
        try:
            data = await fetcher()
        except Exception as e:
            if entry is not None and allow_stale:
                self._counters.stale_hits += 1
                logger.debug(f"Fetch failed, using stale data for {cache_key}: {e}")
                return CacheGetResult(data=entry.data, from_cache=True, is_stale=True, age=entry.age(now))
            raise

        self.set(namespace, key_parts, data, effective_ttl)
        return CacheGetResult(data=data, from_cache=False, is_stale=False, age=0.0)

    def peek(self, namespace: CacheNamespace, key_parts: Sequence[str]) -> Any | None:
        """Return stored data regardless of expiry, without touching counters."""
        entry = self._entries.get(self.build_key(namespace, key_parts))
        return entry.data if entry is not None else None

    def keys(self, namespace: CacheNamespace) -> list[str]:
        """Un-prefixed keys stored under namespace."""
        prefix = f"{namespace.value}:"
        return [key[len(prefix) :] for key in self._entries if key.startswith(prefix)]

    # --- Writes ---

    def set(self, namespace: CacheNamespace, key_parts: Sequence[str], data: Any, ttl: float | None = None) -> None:
        """Store data unconditionally and schedule a durable save."""
        cache_key = self.build_key(namespace, key_parts)
        effective_ttl = ttl if ttl is not None else self.default_ttl_for(namespace)
        self._entries[cache_key] = CacheEntry(data=data, timestamp=self._clock(), ttl=effective_ttl)
        self._schedule_save()

    def invalidate(self, namespace: CacheNamespace, pattern: str | None = None) -> int:
        """Remove entries of namespace whose key matches pattern.

        Args:
            namespace: Namespace to invalidate
            pattern: Key pattern where "*" matches zero or more characters;
                     None removes the whole namespace

        Returns:
            Number of entries removed
        """
        prefix = f"{namespace.value}:"
        regex = None
        if pattern is not None:
            regex = re.compile("^" + ".*".join(re.escape(part) for part in pattern.split("*")) + "$")

        removed = [
            key
            for key in self._entries
            if key.startswith(prefix) and (regex is None or regex.match(key[len(prefix) :]))
        ]
        for key in removed:
            del self._entries[key]

        logger.debug(f"Invalidated {len(removed)} entries for namespace={namespace.value} pattern={pattern or '*'}")

        if removed:
            self._schedule_save()
        return len(removed)

    def clear(self, namespace: CacheNamespace | None = None) -> None:
        """Clear one namespace, or everything including statistics."""
        if namespace is not None:
            self.invalidate(namespace)
            return

        self._entries.clear()
        self._counters = CacheCounters()
        logger.debug("Cleared all cache entries")
        self._schedule_save()

    def prune(self) -> int:
        """Remove every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.debug(f"Pruned {len(expired)} expired entries")
            self._schedule_save()
        return len(expired)

    # --- Statistics ---

    def get_stats(self) -> CacheStats:
        """Compute statistics by scanning every entry."""
        entries_by_namespace = {namespace.value: 0 for namespace in CacheNamespace}
        oldest: float | None = None
        newest: float | None = None
        estimated_bytes = 0

        for key, entry in self._entries.items():
            namespace = key.split(":", 1)[0]
            if namespace in entries_by_namespace:
                entries_by_namespace[namespace] += 1

            if oldest is None or entry.timestamp < oldest:
                oldest = entry.timestamp
            if newest is None or entry.timestamp > newest:
                newest = entry.timestamp

            try:
                payload = {"data": entry.data, "timestamp": entry.timestamp, "ttl": entry.ttl}
                estimated_bytes += len(json.dumps(payload).encode("utf-8"))
            except (TypeError, ValueError):
                estimated_bytes += 1000

        total_requests = self._counters.total_hits + self._counters.total_misses
        hit_rate = self._counters.total_hits / total_requests if total_requests else 0.0
        miss_rate = self._counters.total_misses / total_requests if total_requests else 0.0

        return CacheStats(
            total_entries=len(self._entries),
            entries_by_namespace=entries_by_namespace,
            hit_rate=hit_rate,
            miss_rate=miss_rate,
            total_hits=self._counters.total_hits,
            total_misses=self._counters.total_misses,
            stale_hits=self._counters.stale_hits,
            estimated_bytes=estimated_bytes,
            oldest_entry=oldest,
            newest_entry=newest,
            persist_failures=self.persist_failures,
        )

    # --- Persistence ---

    def to_snapshot(self) -> PersistentSnapshot:
        """Serialize the whole cache."""
        entries = []
        for full_key, entry in self._entries.items():
            namespace, key = full_key.split(":", 1)
            entries.append(
                SnapshotEntry(
                    namespace=CacheNamespace(namespace),
                    key=key,
                    data=entry.data,
                    timestamp=entry.timestamp,
                    ttl=entry.ttl,
                )
            )
        return PersistentSnapshot(entries=entries, stats=CacheCounters(**self._counters.to_dict()))

    async def load(self) -> int:
        """Restore entries from durable storage.

        Snapshots with a different schema version are discarded wholesale.
        Entries written since process start win over restored ones.

        Returns:
            Number of entries restored
        """
        if self._storage is None:
            return 0

        try:
            raw = await self._storage.load(self._storage_key)
        except Exception as e:
            logger.warning(f"Failed to load cache snapshot: {e}")
            return 0

        if not raw:
            logger.debug("No persisted cache found")
            return 0

        stored_version = raw.get("schema_version")
        if stored_version != CACHE_SCHEMA_VERSION:
            logger.info(
                f"Cache schema mismatch (stored={stored_version}, current={CACHE_SCHEMA_VERSION}), ignoring snapshot"
            )
            return 0

        try:
            snapshot = PersistentSnapshot.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding malformed cache snapshot: {e}")
            return 0

        restored = 0
        for item in snapshot.entries:
            cache_key = f"{item.namespace.value}:{item.key}"
            if cache_key in self._entries:
                continue
            self._entries[cache_key] = CacheEntry(data=item.data, timestamp=item.timestamp, ttl=item.ttl)
            restored += 1

        self._counters.merge(snapshot.stats)
        logger.debug(f"Loaded {restored} entries from persistence")
        return restored

    def _schedule_save(self) -> None:
        if self._storage is None:
            return

        self._save_requested = True
        if self._writer_task is not None and not self._writer_task.done():
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; flush() picks up the pending save
            return
        self._writer_task = loop.create_task(self._drain_saves())

    async def _drain_saves(self) -> None:
        while self._save_requested:
            self._save_requested = False
            await self._save_snapshot(self.to_snapshot().to_dict())

    async def _save_snapshot(self, payload: dict) -> None:
        if self._storage is None:
            return
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._save_attempts),
                wait=wait_exponential(multiplier=0.05, max=1.0),
                reraise=True,
            ):
                with attempt:
                    await self._storage.save(self._storage_key, payload)
            logger.debug(f"Persisted {len(payload['entries'])} entries")
        except Exception as e:
            self.persist_failures += 1
            logger.warning(f"Failed to persist cache after {self._save_attempts} attempts: {e}")

    async def flush(self) -> None:
        """Wait until every scheduled save has been written (or failed)."""
        if self._storage is None:
            return
        if self._save_requested and (self._writer_task is None or self._writer_task.done()):
            self._writer_task = asyncio.get_running_loop().create_task(self._drain_saves())
        if self._writer_task is not None:
            await self._writer_task

    async def close(self) -> None:
        """Flush pending saves."""
        await self.flush()
