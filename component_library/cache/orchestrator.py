"""Component catalog orchestration.

Owns the live component list and its refresh lifecycle: dispatching
configured sources, merging results, back-filling version sets and
persisting the catalog across restarts.

Contract:
- refresh_components() always resolves; per-source failures are recorded
- Only one refresh runs at a time; concurrent requests are dropped
- reset_cache() invalidates in-flight refreshes (their results are discarded)
- Callers receive copies of components, never the live objects
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from collections.abc import Coroutine
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from component_library.config.loader import load_config
from component_library.config.settings import CatalogSettings
from component_library.errors import CatalogError
from component_library.gitlab.client import GitLabClient
from component_library.gitlab.client import TokenPrompt
from component_library.gitlab.credentials import CredentialStore
from component_library.gitlab.credentials import EnvCredentialStore
from component_library.gitlab.group_scanner import GroupScanner
from component_library.gitlab.http_client import HttpTransport
from component_library.gitlab.source_fetcher import SourceFetcher
from component_library.models.components import DEFAULT_GITLAB_INSTANCE
from component_library.models.components import Component
from component_library.models.components import SourceConfig
from component_library.storage.snapshot_store import JsonSnapshotStore
from component_library.storage.snapshot_store import SnapshotStore
from component_library.utils.urls import normalize_host

from .models import CACHE_SCHEMA_VERSION
from .models import CacheNamespace
from .models import OrchestratorStats
from .typed_cache import TypedCache
from .versions import LATEST_ALIAS
from .versions import resolve_version_alias

logger = logging.getLogger(__name__)

ORCHESTRATOR_STORAGE_KEY = "component-catalog"

SourceProvider = Callable[[], Sequence[SourceConfig]]


class CacheOrchestrator:
    """Live component catalog with background refresh."""

    def __init__(
        self,
        cache: TypedCache,
        fetcher: SourceFetcher,
        scanner: GroupScanner,
        *,
        sources: Sequence[SourceConfig] | SourceProvider = (),
        storage: SnapshotStore | None = None,
        component_ttl: float = 3600.0,
        version_ttl: float | None = None,
        default_gitlab_instance: str = DEFAULT_GITLAB_INSTANCE,
        transport: HttpTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize orchestrator.

        Args:
            cache: Typed cache shared with the fetcher
            fetcher: Single-project fetcher
            scanner: Group scanner
            sources: Configured sources, or a callable re-read on every refresh
            storage: Durable store for the catalog snapshot
            component_ttl: Seconds before the component list is refreshed
            version_ttl: Seconds before version sets are refreshed (default: 4x component_ttl)
            default_gitlab_instance: Host for sources that name none
            transport: HTTP transport closed by close()
            clock: Time source in seconds
        """
        self.cache = cache
        self.fetcher = fetcher
        self.scanner = scanner
        self.storage = storage
        self.component_ttl = component_ttl
        self.version_ttl = version_ttl if version_ttl is not None else component_ttl * 4
        self.default_gitlab_instance = default_gitlab_instance
        self.transport = transport
        self._clock = clock

        if callable(sources):
            self._sources: SourceProvider = sources
        else:
            fixed = list(sources)
            self._sources = lambda: fixed

        self._components: list[Component] = []
        self._source_errors: dict[str, str] = {}
        self.last_refresh_time = 0.0
        self.last_version_refresh = 0.0
        self.refresh_in_progress = False
        self.version_refresh_in_progress = False
        self._generation = 0
        self._background_tasks: set[asyncio.Task[Any]] = set()

    # --- Lifecycle ---

    async def initialize(self, *, wait: bool = False) -> None:
        """Restore persisted state and refresh if it is empty or expired.

        Args:
            wait: Await the refresh instead of running it in the background
        """
        await self.cache.load()
        await self._load_snapshot()

        expired = self._clock() - self.last_refresh_time > self.component_ttl
        if not self._components or expired:
            if wait:
                await self.refresh_components()
            else:
                self._schedule(self.refresh_components())

    async def wait_for_background(self) -> None:
        """Wait for every scheduled background task to finish."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel background work, flush pending saves and close the transport."""
        for task in list(self._background_tasks):
            task.cancel()
        await asyncio.gather(*list(self._background_tasks), return_exceptions=True)
        await self.cache.close()
        if self.transport is not None:
            await self.transport.aclose()

    def _schedule(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    # --- Reads ---

    async def get_components(self) -> list[Component]:
        """Current components; schedules a refresh when they are stale.

        Returns immediately with the current list, never waiting on the network.
        """
        now = self._clock()
        if now - self.last_refresh_time > self.component_ttl:
            if not self.refresh_in_progress:
                logger.debug("Component cache expired, scheduling background refresh")
                self._schedule(self.refresh_components())
        elif (
            self._components
            and now - self.last_version_refresh > self.version_ttl
            and not self.version_refresh_in_progress
        ):
            logger.debug("Version cache expired, scheduling background version refresh")
            self._schedule(self.refresh_versions())

        return [component.model_copy(deep=True) for component in self._components]

    def get_source_errors(self) -> dict[str, str]:
        return dict(self._source_errors)

    def has_errors(self) -> bool:
        return bool(self._source_errors)

    def get_cache_stats(self) -> OrchestratorStats:
        version_keys = self.cache.keys(CacheNamespace.VERSIONS)
        return OrchestratorStats(
            components_count=len(self._components),
            project_versions_cache_count=len(version_keys),
            source_errors_count=len(self._source_errors),
            last_refresh_time=self.last_refresh_time,
            components=[f"{component.name} ({component.source})" for component in self._components],
            project_versions=version_keys,
            source_errors=list(self._source_errors),
            cache=self.cache.get_stats(),
        )

    # --- Refresh ---

    async def refresh_components(self) -> None:
        """Re-fetch every configured source and swap in the merged list."""
        if self.refresh_in_progress:
            logger.info("Refresh already in progress, skipping")
            return

        self.refresh_in_progress = True
        generation = self._generation
        try:
            sources = list(self._sources())
            logger.info(f"Refreshing components from {len(sources)} sources")

            outcomes = await asyncio.gather(
                *(self._fetch_source(source) for source in sources),
                return_exceptions=True,
            )

            components: list[Component] = []
            errors: dict[str, str] = {}
            for source, outcome in zip(sources, outcomes):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                if isinstance(outcome, BaseException):
                    message = outcome.message if isinstance(outcome, CatalogError) else str(outcome)
                    logger.warning(f"Failed to fetch from source {source.name}: {message}")
                    errors[source.name] = message
                    continue
                components.extend(outcome)

            if generation != self._generation:
                logger.info("Cache was reset during refresh, discarding results")
                return

            self._components = self._dedupe(components)
            self._source_errors = errors
            self.last_refresh_time = self._clock()
            logger.info(f"Loaded {len(self._components)} components ({len(errors)} sources failed)")
            await self._save_snapshot()

            await self._backfill_versions(generation)
            if generation == self._generation:
                self.last_version_refresh = self._clock()
                await self._save_snapshot()
        finally:
            self.refresh_in_progress = False

    async def force_refresh(self) -> None:
        self.last_refresh_time = 0.0
        await self.refresh_components()

    async def update_cache(self) -> None:
        """Re-read every source from the remote API, bypassing cached catalogs."""
        logger.info("Updating cache, forcing refresh of all sources")
        self.cache.invalidate(CacheNamespace.CATALOG)
        await self.force_refresh()

    async def reset_cache(self) -> None:
        """Return to the just-initialized state without re-fetching."""
        logger.info("Resetting component cache")
        self._generation += 1
        self._components = []
        self._source_errors = {}
        self.last_refresh_time = 0.0
        self.last_version_refresh = 0.0
        self.cache.invalidate(CacheNamespace.VERSIONS)
        self.cache.invalidate(CacheNamespace.CATALOG)

        if self.storage is not None:
            try:
                await self.storage.delete(ORCHESTRATOR_STORAGE_KEY)
            except Exception as e:
                logger.warning(f"Failed to delete catalog snapshot: {e}")

    async def _fetch_source(self, source: SourceConfig) -> list[Component]:
        host = normalize_host(source.gitlab_instance or self.default_gitlab_instance)
        if source.type == "group":
            result = await self.scanner.scan(host, source.path, source.name)
            return result.components
        return await self.fetcher.fetch_all(host, source.path, source.name)

    @staticmethod
    def _dedupe(components: list[Component]) -> list[Component]:
        seen: set[tuple[str, str, str, str]] = set()
        unique = []
        for component in components:
            if component.identity in seen:
                continue
            seen.add(component.identity)
            unique.append(component)
        return unique

    # --- Versions ---

    async def fetch_component_versions(self, component: Component) -> list[str]:
        """Known versions of a component's project, highest priority first.

        Attaches the result to every cached component of the same
        name, path and host. Falls back to [component.version] on failure.
        """
        host = normalize_host(component.gitlab_instance)
        path = component.source_path
        try:
            versions = await self._project_versions(host, path)
        except CatalogError as e:
            logger.warning(f"Failed to fetch versions for {host}/{path}: {e.message}")
            versions = [component.version]

        for cached in self._components:
            if cached.same_project_component(component):
                cached.available_versions = list(versions)
        return versions

    async def _project_versions(self, host: str, path: str) -> list[str]:
        result = await self.cache.get(
            CacheNamespace.VERSIONS,
            [host, path],
            lambda: self.fetcher.fetch_versions(host, path),
            allow_stale=True,
        )
        return list(result.data)

    async def _backfill_versions(self, generation: int) -> None:
        for component in list(self._components):
            if generation != self._generation:
                return
            if component.available_versions is None:
                await self.fetch_component_versions(component)

    async def refresh_versions(self) -> None:
        """Re-fetch version sets of every cached component."""
        if self.version_refresh_in_progress or not self._components:
            return

        self.version_refresh_in_progress = True
        generation = self._generation
        try:
            self.last_version_refresh = self._clock()
            self.cache.invalidate(CacheNamespace.VERSIONS)
            for component in self._components:
                component.available_versions = None
            await self._backfill_versions(generation)
            if generation == self._generation:
                await self._save_snapshot()
        finally:
            self.version_refresh_in_progress = False

    async def fetch_specific_version(self, name: str, path: str, host: str, version: str) -> Component | None:
        """A component at a pinned version, fetched on demand if not cached.

        "latest" resolves to the project's highest semantic version first.

        Raises:
            TransportError: If the pinned fetch fails
            ParseError: If the pinned catalog is malformed
        """
        host = normalize_host(host)
        if version == LATEST_ALIAS:
            version = resolve_version_alias(version, await self._project_versions(host, path))
            logger.debug(f"Resolved latest for {path}/{name} to {version}")

        for component in self._components:
            if component.identity == (name, path, host, version):
                return component.model_copy(deep=True)

        component = await self.fetcher.fetch_pinned(name, path, host, version)
        if component is None:
            return None

        self.add_component(component)
        return component.model_copy(deep=True)

    def add_component(self, component: Component) -> None:
        """Insert a component, replacing any with the same identity."""
        stored = component.model_copy(deep=True)
        for index, existing in enumerate(self._components):
            if existing.identity == stored.identity:
                self._components[index] = stored
                break
        else:
            self._components.append(stored)

        if self.storage is not None:
            self._schedule(self._save_snapshot())

    # --- Persistence ---

    async def _save_snapshot(self) -> None:
        if self.storage is None:
            return
        snapshot = {
            "components": [component.model_dump(mode="json") for component in self._components],
            "last_refresh_time": self.last_refresh_time,
            "last_version_refresh": self.last_version_refresh,
            "schema_version": CACHE_SCHEMA_VERSION,
        }
        try:
            await self.storage.save(ORCHESTRATOR_STORAGE_KEY, snapshot)
        except Exception as e:
            logger.warning(f"Failed to persist component catalog: {e}")

    async def _load_snapshot(self) -> None:
        if self.storage is None:
            return
        try:
            data = await self.storage.load(ORCHESTRATOR_STORAGE_KEY)
        except Exception as e:
            logger.warning(f"Failed to load component catalog: {e}")
            return

        if not data:
            return
        if data.get("schema_version") != CACHE_SCHEMA_VERSION:
            logger.info("Component catalog schema changed, ignoring persisted catalog")
            return

        try:
            components = [Component.model_validate(item) for item in data.get("components", [])]
        except ValidationError as e:
            logger.warning(f"Discarding malformed component catalog: {e.error_count()} errors")
            return

        self._components = components
        self.last_refresh_time = float(data.get("last_refresh_time", 0.0))
        # Older snapshots carry no version timestamp; versions were filled with the list
        self.last_version_refresh = float(data.get("last_version_refresh", self.last_refresh_time))
        logger.info(f"Restored {len(components)} components from persisted catalog")


def create_orchestrator(
    settings: CatalogSettings | None = None,
    *,
    storage: SnapshotStore | None = None,
    credentials: CredentialStore | None = None,
    token_prompt: TokenPrompt | None = None,
    transport: HttpTransport | None = None,
) -> CacheOrchestrator:
    """Wire an orchestrator and its collaborators from settings.

    Args:
        settings: Catalog settings (default: load_config())
        storage: Durable store (default: JSON files under the cache dir)
        credentials: Token store (default: environment variables)
        token_prompt: Async callback asked for a token on authentication failure
        transport: HTTP transport (default: built from settings)
    """
    settings = settings or load_config()
    storage = storage if storage is not None else JsonSnapshotStore()
    transport = transport or HttpTransport(
        timeout=settings.http_timeout,
        retry_attempts=settings.retry_attempts,
        retry_base_delay=settings.retry_base_delay,
    )

    cache = TypedCache(storage, default_ttl=settings.component_ttl, version_ttl=settings.version_ttl)
    client = GitLabClient(
        transport,
        credentials if credentials is not None else EnvCredentialStore(),
        token_prompt=token_prompt,
        per_page=settings.per_page,
    )
    fetcher = SourceFetcher(client, cache, batch_size=settings.batch_size)
    scanner = GroupScanner(client, fetcher, batch_size=settings.batch_size)

    return CacheOrchestrator(
        cache,
        fetcher,
        scanner,
        sources=lambda: settings.component_sources,
        storage=storage,
        component_ttl=settings.component_ttl,
        version_ttl=settings.version_ttl,
        default_gitlab_instance=settings.default_gitlab_instance,
        transport=transport,
    )


_default_orchestrator: CacheOrchestrator | None = None


def get_default_orchestrator() -> CacheOrchestrator:
    """Process-wide orchestrator built from the loaded configuration."""
    global _default_orchestrator
    if _default_orchestrator is None:
        _default_orchestrator = create_orchestrator()
    return _default_orchestrator


def reset_default_orchestrator() -> None:
    """Forget the process-wide orchestrator (tests)."""
    global _default_orchestrator
    _default_orchestrator = None
