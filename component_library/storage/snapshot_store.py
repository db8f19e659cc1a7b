"""Durable snapshot storage.

Stores whole JSON-serializable snapshots under a single logical key. Writes
replace the previous snapshot atomically (temp file + rename), so concurrent
fire-and-forget saves converge on the last write.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from pathlib import Path
from typing import Any
from typing import Protocol

from component_library.errors import PersistenceError

from .paths import get_cache_dir

logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    """Durable key/value store for whole snapshots."""

    async def load(self, key: str) -> dict[str, Any] | None: ...

    async def save(self, key: str, snapshot: dict[str, Any]) -> None: ...

    async def delete(self, key: str) -> None: ...


class JsonSnapshotStore:
    """JSON-file snapshot store, one file per logical key."""

    def __init__(self, storage_dir: Path | None = None) -> None:
        """Initialize snapshot store.

        Args:
            storage_dir: Directory for snapshot files.
                         Defaults to $COMPONENTD_HOME/cache/snapshots
        """
        self.storage_dir = storage_dir or (get_cache_dir() / "snapshots")
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initialized snapshot store at {self.storage_dir}")

    def _path_for(self, key: str) -> Path:
        safe_key = key.replace("/", "_").replace("\\", "_")
        return self.storage_dir / f"{safe_key}.json"

    def _save_json(self, path: Path, data: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)

        temp_path = path.with_suffix(".tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, default=str, ensure_ascii=False)
            temp_path.replace(path)
            logger.debug(f"Saved snapshot to {path}")
        except Exception as e:
            if temp_path.exists():
                temp_path.unlink()
            raise PersistenceError(f"Failed to save snapshot to {path}: {e}", key=path.stem) from e

    def _load_json(self, path: Path) -> dict[str, Any] | None:
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except Exception as e:
            raise PersistenceError(f"Failed to load snapshot from {path}: {e}", operation="read", key=path.stem) from e

    async def load(self, key: str) -> dict[str, Any] | None:
        """Load the snapshot stored under key, or None if absent."""
        return await asyncio.to_thread(self._load_json, self._path_for(key))

    async def save(self, key: str, snapshot: dict[str, Any]) -> None:
        """Replace the snapshot stored under key."""
        await asyncio.to_thread(self._save_json, self._path_for(key), snapshot)

    async def delete(self, key: str) -> None:
        """Remove the snapshot stored under key (no-op if absent)."""
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to delete snapshot {path}: {e}", key=key) from e
        logger.debug(f"Deleted snapshot {path}")


class MemorySnapshotStore:
    """In-process snapshot store.

    Keeps deep copies so callers can't mutate what was saved.
    """

    def __init__(self) -> None:
        self.snapshots: dict[str, dict[str, Any]] = {}
        self.save_count = 0

    async def load(self, key: str) -> dict[str, Any] | None:
        snapshot = self.snapshots.get(key)
        return copy.deepcopy(snapshot) if snapshot is not None else None

    async def save(self, key: str, snapshot: dict[str, Any]) -> None:
        self.snapshots[key] = copy.deepcopy(snapshot)
        self.save_count += 1

    async def delete(self, key: str) -> None:
        self.snapshots.pop(key, None)
