"""Cache models for the typed cache and the orchestrator.

This module contains all data models for cache management including:
- Namespaces and entries for the in-memory typed cache
- Persistent snapshot models written to durable storage
- Statistics models for API responses
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from typing import Any
from typing import Generic
from typing import TypeVar

from pydantic import Field

from component_library.models.base import CamelCaseModel

T = TypeVar("T")

CACHE_SCHEMA_VERSION = "1.0.0"


# =============================================================================
# Typed Cache Models
# =============================================================================


class CacheNamespace(str, Enum):
    """Partitions of the cache key space."""

    COMPONENT = "component"
    CATALOG = "catalog"
    SOURCE = "source"
    VERSIONS = "versions"


@dataclass
class CacheEntry:
    """One cached value with its TTL bookkeeping.

    An entry older than its ttl is expired but stays servable as stale data
    until it is pruned, invalidated or overwritten.
    """

    data: Any
    timestamp: float
    ttl: float

    def age(self, now: float) -> float:
        """Seconds since the entry was stored."""
        return now - self.timestamp

    def is_expired(self, now: float) -> bool:
        """Whether the entry outlived its TTL."""
        return self.age(now) > self.ttl


@dataclass
class CacheGetResult(Generic[T]):
    """Result of a cache get with provenance metadata."""

    data: T
    from_cache: bool
    is_stale: bool
    age: float


@dataclass
class CacheCounters:
    """Monotonic hit/miss counters, reset only by a full clear."""

    total_hits: int = 0
    total_misses: int = 0
    stale_hits: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "total_hits": self.total_hits,
            "total_misses": self.total_misses,
            "stale_hits": self.stale_hits,
        }

    def merge(self, other: CacheCounters) -> None:
        """Add another set of counters to this one."""
        self.total_hits += other.total_hits
        self.total_misses += other.total_misses
        self.stale_hits += other.stale_hits

    @classmethod
    def from_dict(cls, data: dict) -> CacheCounters:
        """Load from dictionary."""
        return cls(
            total_hits=int(data.get("total_hits", 0)),
            total_misses=int(data.get("total_misses", 0)),
            stale_hits=int(data.get("stale_hits", 0)),
        )


# =============================================================================
# Persistent Snapshot Models
# =============================================================================


@dataclass
class SnapshotEntry:
    """Serialized form of one cache entry."""

    namespace: CacheNamespace
    key: str
    data: Any
    timestamp: float
    ttl: float

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "namespace": self.namespace.value,
            "key": self.key,
            "data": self.data,
            "timestamp": self.timestamp,
            "ttl": self.ttl,
        }

    @classmethod
    def from_dict(cls, data: dict) -> SnapshotEntry:
        """Load from dictionary."""
        return cls(
            namespace=CacheNamespace(data["namespace"]),
            key=data["key"],
            data=data["data"],
            timestamp=float(data["timestamp"]),
            ttl=float(data["ttl"]),
        )


@dataclass
class PersistentSnapshot:
    """Durable serialization of the whole typed cache."""

    entries: list[SnapshotEntry] = field(default_factory=list)
    stats: CacheCounters = field(default_factory=CacheCounters)
    schema_version: str = CACHE_SCHEMA_VERSION

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "entries": [entry.to_dict() for entry in self.entries],
            "stats": self.stats.to_dict(),
            "schema_version": self.schema_version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> PersistentSnapshot:
        """Load from dictionary."""
        return cls(
            entries=[SnapshotEntry.from_dict(entry) for entry in data.get("entries", [])],
            stats=CacheCounters.from_dict(data.get("stats") or {}),
            schema_version=data.get("schema_version", ""),
        )


# =============================================================================
# Statistics Models (API responses)
# =============================================================================


class CacheStats(CamelCaseModel):
    """Typed cache statistics, computed on demand by a full scan."""

    total_entries: int = Field(0, description="Number of entries across all namespaces")
    entries_by_namespace: dict[str, int] = Field(default_factory=dict, description="Entry count per namespace")
    hit_rate: float = Field(0.0, description="Hits / (hits + misses)")
    miss_rate: float = Field(0.0, description="Misses / (hits + misses)")
    total_hits: int = Field(0, description="Live hits since last clear")
    total_misses: int = Field(0, description="Misses since last clear")
    stale_hits: int = Field(0, description="Stale fallbacks served since last clear")
    estimated_bytes: int = Field(0, description="Rough size of the serialized entries")
    oldest_entry: float | None = Field(None, description="Timestamp of the oldest entry")
    newest_entry: float | None = Field(None, description="Timestamp of the newest entry")
    persist_failures: int = Field(0, description="Durable saves that failed after retries")


class OrchestratorStats(CamelCaseModel):
    """Component catalog statistics."""

    components_count: int = Field(0, description="Components in the live list")
    project_versions_cache_count: int = Field(0, description="Cached version sets")
    source_errors_count: int = Field(0, description="Sources that failed during the last refresh")
    last_refresh_time: float = Field(0.0, description="Timestamp of the last completed refresh")
    components: list[str] = Field(default_factory=list, description="'name (source)' for each component")
    project_versions: list[str] = Field(default_factory=list, description="Keys of cached version sets")
    source_errors: list[str] = Field(default_factory=list, description="Names of failing sources")
    cache: CacheStats = Field(default_factory=CacheStats, description="Typed cache statistics")
