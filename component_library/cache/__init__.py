"""Cache management for the component catalog.

This module provides the in-memory typed cache and version ordering:
- Namespaced TTL cache with stale fallback and durable snapshots
- Version priority ordering
- Statistics models

The orchestrator lives in component_library.cache.orchestrator and is
imported from there directly, since it depends on the GitLab layer which
itself depends on this package.
"""

# Services
from .typed_cache import TypedCache

# Models
from .models import CACHE_SCHEMA_VERSION
from .models import CacheEntry
from .models import CacheGetResult
from .models import CacheNamespace
from .models import CacheStats
from .models import OrchestratorStats
from .models import PersistentSnapshot

# Version ordering
from .versions import resolve_latest
from .versions import resolve_version_alias
from .versions import sort_versions

__all__ = [
    # Services
    "TypedCache",
    # Models
    "CACHE_SCHEMA_VERSION",
    "CacheNamespace",
    "CacheEntry",
    "CacheGetResult",
    "CacheStats",
    "OrchestratorStats",
    "PersistentSnapshot",
    # Versions
    "sort_versions",
    "resolve_latest",
    "resolve_version_alias",
]
