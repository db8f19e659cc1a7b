"""Pytest configuration and shared fixtures."""

import tempfile
from collections.abc import Callable
from collections.abc import Generator
from pathlib import Path

import pytest

from component_library.cache.typed_cache import TypedCache
from component_library.gitlab.group_scanner import GroupScanResult
from component_library.models.components import Component
from component_library.storage.snapshot_store import MemorySnapshotStore
from component_library.utils.urls import component_url


class FakeClock:
    """Manually advanced time source in seconds."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_component(
    name: str,
    source_path: str = "group/project",
    *,
    source: str = "Test Source",
    host: str = "gitlab.com",
    version: str = "main",
) -> Component:
    return Component(
        name=name,
        description=f"{name} component",
        source=source,
        source_path=source_path,
        gitlab_instance=host,
        version=version,
        url=component_url(host, source_path, name, version),
    )


class FakeSourceFetcher:
    """In-memory stand-in for SourceFetcher.

    projects maps "host/path" to component names (or prebuilt components) or an exception.
    """

    def __init__(self) -> None:
        self.projects: dict[str, list[str | Component] | Exception] = {}
        self.tags: dict[str, list[str] | Exception] = {}
        self.pinned: dict[tuple[str, str, str, str], Component] = {}
        self.fetch_all_calls: list[tuple[str, str, str]] = []
        self.version_calls: list[tuple[str, str]] = []
        self.pinned_calls: list[tuple[str, str, str, str]] = []

    async def fetch_all(self, host: str, path: str, name: str) -> list[Component]:
        self.fetch_all_calls.append((host, path, name))
        outcome = self.projects.get(f"{host}/{path}", [])
        if isinstance(outcome, Exception):
            raise outcome
        return [
            item if isinstance(item, Component) else build_component(item, path, source=name, host=host)
            for item in outcome
        ]

    async def fetch_versions(self, host: str, path: str) -> list[str]:
        self.version_calls.append((host, path))
        outcome = self.tags.get(f"{host}/{path}", [])
        if isinstance(outcome, Exception):
            raise outcome
        return ["main", "master", *outcome]

    async def fetch_pinned(self, name: str, path: str, host: str, version: str) -> Component | None:
        self.pinned_calls.append((name, path, host, version))
        return self.pinned.get((name, path, host, version))


class FakeGroupScanner:
    """In-memory stand-in for GroupScanner; groups maps "host/path" to results or exceptions."""

    def __init__(self) -> None:
        self.groups: dict[str, list[Component] | Exception] = {}

    async def scan(self, host: str, group_path: str, name: str) -> GroupScanResult:
        outcome = self.groups.get(f"{host}/{group_path}", [])
        if isinstance(outcome, Exception):
            raise outcome
        return GroupScanResult(components=outcome, projects_scanned=len(outcome), total_components=len(outcome))


@pytest.fixture
def temp_storage_dir() -> Generator[Path, None, None]:
    """Create temporary storage directory for tests.

    Automatically cleaned up after test completes.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_storage_env(temp_storage_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point COMPONENTD_HOME at a temp directory and clear overrides.

    Returns:
        Path to temporary storage directory
    """
    monkeypatch.setenv("COMPONENTD_HOME", str(temp_storage_dir))
    for var in (
        "COMPONENTD_CONFIG_DIR",
        "COMPONENTD_STATE_DIR",
        "COMPONENTD_CACHE_DIR",
        "COMPONENTD_LOG_DIR",
        "COMPONENTD_CACHE_TIME",
        "COMPONENTD_BATCH_SIZE",
        "GITLAB_TOKEN",
    ):
        monkeypatch.delenv(var, raising=False)
    return temp_storage_dir


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> MemorySnapshotStore:
    return MemorySnapshotStore()


@pytest.fixture
def typed_cache(memory_store: MemorySnapshotStore, clock: FakeClock) -> TypedCache:
    """Typed cache on an in-memory store with a controllable clock (TTL 3600s)."""
    return TypedCache(memory_store, default_ttl=3600.0, clock=clock)


@pytest.fixture
def fake_fetcher() -> FakeSourceFetcher:
    return FakeSourceFetcher()


@pytest.fixture
def fake_scanner() -> FakeGroupScanner:
    return FakeGroupScanner()


@pytest.fixture
def component_factory() -> Callable[..., Component]:
    """Factory building components with consistent URLs."""
    return build_component
