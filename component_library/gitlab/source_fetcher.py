"""Component fetching for a single GitLab project.

Contract:
- fetch_all() returns every component of a project or raises; never partial
- fetch_pinned() returns None when the version or component does not exist
- Catalogs are cached in the catalog namespace and served stale when a
  refresh fails
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from component_library.cache.models import CacheNamespace
from component_library.cache.typed_cache import TypedCache
from component_library.cache.versions import resolve_latest
from component_library.errors import TransportError
from component_library.models.components import Component
from component_library.models.components import ComponentParameter
from component_library.utils.urls import component_url
from component_library.utils.urls import normalize_host

from .client import GitLabClient
from .spec_parser import parse_component_spec

logger = logging.getLogger(__name__)

DEFAULT_BRANCHES = ("main", "master")
TEMPLATE_SUFFIXES = (".yml", ".yaml")


def _template_stem(filename: str) -> str:
    for suffix in TEMPLATE_SUFFIXES:
        if filename.endswith(suffix):
            return filename[: -len(suffix)]
    return filename


class SourceFetcher:
    """Reads the component catalog of one project."""

    def __init__(self, client: GitLabClient, cache: TypedCache, *, batch_size: int = 5) -> None:
        self.client = client
        self.cache = cache
        self.batch_size = max(1, batch_size)

    async def fetch_all(self, host: str, path: str, name: str) -> list[Component]:
        """Fetch every component of a project at its default branch.

        Args:
            host: GitLab host, with or without scheme
            path: Project path
            name: Source display name stored on each component

        Returns:
            Components of the project (empty if it has no templates)

        Raises:
            TransportError: If the project cannot be read and nothing is cached
            ParseError: If a template header is malformed and nothing is cached
        """
        host = normalize_host(host)
        result = await self.cache.get(
            CacheNamespace.CATALOG,
            [host, path],
            lambda: self._fetch_catalog(host, path),
            allow_stale=True,
        )
        if result.is_stale:
            logger.warning(f"Serving stale catalog for {host}/{path} ({result.age:.0f}s old)")

        catalog = result.data
        return [self._to_component(entry, host, path, name, catalog["ref"]) for entry in catalog["components"]]

    async def fetch_versions(self, host: str, path: str) -> list[str]:
        """Known versions of a project: main, master and every tag, highest priority first."""
        tags = await self.client.fetch_project_tags(normalize_host(host), path)
        return resolve_latest([*DEFAULT_BRANCHES, *tags])

    async def fetch_pinned(self, name: str, path: str, host: str, version: str) -> Component | None:
        """Fetch one component at a specific version.

        Returns:
            The component, or None if the version is unknown or the component
            does not exist at that version

        Raises:
            TransportError: On network or HTTP failure
            ParseError: On malformed payloads
        """
        host = normalize_host(host)
        available = await self.fetch_versions(host, path)
        if version not in available:
            logger.info(f"Version {version} not found for {host}/{path}")
            return None

        result = await self.cache.get(
            CacheNamespace.CATALOG,
            [host, f"{path}@{version}"],
            lambda: self._fetch_catalog(host, path, ref=version),
            allow_stale=True,
        )
        for entry in result.data["components"]:
            if entry["name"] == name:
                return self._to_component(entry, host, path, f"Components from {path}", version)

        logger.info(f"Component {name} not found in {host}/{path}@{version}")
        return None

    @staticmethod
    def _to_component(entry: dict[str, Any], host: str, path: str, source: str, version: str) -> Component:
        return Component(
            name=entry["name"],
            description=entry["description"],
            parameters=[ComponentParameter(**parameter) for parameter in entry["parameters"]],
            source=source,
            source_path=path,
            gitlab_instance=host,
            version=version,
            url=component_url(host, path, entry["name"], version),
        )

    async def _fetch_catalog(self, host: str, path: str, ref: str | None = None) -> dict[str, Any]:
        """Read and parse every template of a project.

        Returns:
            {"ref": ..., "components": [{"name", "description", "parameters"}]}
        """
        if ref is None:
            project = await self.client.fetch_project(host, path)
            ref = project.default_branch or DEFAULT_BRANCHES[0]

        try:
            tree = await self.client.fetch_template_tree(host, path, ref)
        except TransportError as e:
            if e.status_code != 404:
                raise
            tree = []

        templates = [item.name for item in tree if item.type == "blob" and item.name.endswith(TEMPLATE_SUFFIXES)]
        logger.debug(f"Found {len(templates)} template files in {host}/{path}@{ref}")

        components: list[dict[str, Any]] = []
        for start in range(0, len(templates), self.batch_size):
            batch = templates[start : start + self.batch_size]
            results = await asyncio.gather(*(self._read_template(host, path, filename, ref) for filename in batch))
            components.extend(entry for entry in results if entry is not None)

        logger.info(f"Fetched {len(components)} components from {host}/{path}@{ref}")
        return {"ref": ref, "components": components}

    async def _read_template(self, host: str, path: str, filename: str, ref: str) -> dict[str, Any] | None:
        try:
            content = await self.client.fetch_template(host, path, filename, ref)
        except TransportError as e:
            if e.status_code != 404:
                raise
            logger.debug(f"Template {filename} vanished from {host}/{path}@{ref}")
            return None

        spec = parse_component_spec(content, filename)
        if not spec.is_component:
            return None

        name = _template_stem(filename)
        return {
            "name": name,
            "description": spec.description or f"{name} component",
            "parameters": [parameter.model_dump() for parameter in spec.parameters],
        }
