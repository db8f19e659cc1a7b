"""Storage module for component_library.

Provides path resolution and durable snapshot persistence.

Public Interface:
    - SnapshotStore: Protocol for durable snapshot storage
    - JsonSnapshotStore: Atomic JSON file implementation
    - MemorySnapshotStore: In-process implementation
    - get_home_dir: Get COMPONENTD_HOME
    - get_config_dir: Get config directory
    - get_state_dir: Get state directory
    - get_cache_dir: Get cache directory
    - get_log_dir: Get log directory
"""

from .paths import get_cache_dir
from .paths import get_config_dir
from .paths import get_home_dir
from .paths import get_log_dir
from .paths import get_state_dir
from .snapshot_store import JsonSnapshotStore
from .snapshot_store import MemorySnapshotStore
from .snapshot_store import SnapshotStore

__all__ = [
    "SnapshotStore",
    "JsonSnapshotStore",
    "MemorySnapshotStore",
    "get_home_dir",
    "get_config_dir",
    "get_state_dir",
    "get_cache_dir",
    "get_log_dir",
]
