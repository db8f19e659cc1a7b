"""Group scanning: every project below a GitLab group.

Child projects are fetched in fixed-size batches; a batch finishes completely
before the next starts. A failing child is logged and skipped.
"""

from __future__ import annotations

import asyncio
import logging

from pydantic import Field

from component_library.models.base import CamelCaseModel
from component_library.models.components import Component
from component_library.utils.urls import normalize_host

from .api_models import GitLabProject
from .client import GitLabClient
from .source_fetcher import SourceFetcher

logger = logging.getLogger(__name__)


class GroupScanResult(CamelCaseModel):
    """Outcome of scanning a group."""

    components: list[Component] = Field(default_factory=list)
    projects_scanned: int = 0
    projects_with_components: int = 0
    total_components: int = 0
    failed_projects: list[str] = Field(default_factory=list, description="Paths of projects that failed")


class GroupScanner:
    """Expands a group into projects and fetches each one."""

    def __init__(self, client: GitLabClient, fetcher: SourceFetcher, *, batch_size: int = 5) -> None:
        self.client = client
        self.fetcher = fetcher
        self.batch_size = max(1, batch_size)

    async def scan(self, host: str, group_path: str, name: str) -> GroupScanResult:
        """Fetch components from every project in a group.

        Args:
            host: GitLab host
            group_path: Group path (subgroups included)
            name: Source display name; children are named "{name}/{project}"

        Returns:
            Aggregated components and scan counters

        Raises:
            TransportError: If the group's project list cannot be read
        """
        host = normalize_host(host)
        projects = await self.client.fetch_group_projects(host, group_path)
        logger.info(f"Scanning {len(projects)} projects in group {host}/{group_path}")

        result = GroupScanResult()
        for start in range(0, len(projects), self.batch_size):
            batch = projects[start : start + self.batch_size]
            outcomes = await asyncio.gather(
                *(self._fetch_project(host, project, name) for project in batch),
                return_exceptions=True,
            )

            for project, outcome in zip(batch, outcomes):
                result.projects_scanned += 1
                if isinstance(outcome, BaseException):
                    if isinstance(outcome, asyncio.CancelledError):
                        raise outcome
                    logger.warning(f"Failed to fetch components from {project.path_with_namespace}: {outcome}")
                    result.failed_projects.append(project.path_with_namespace)
                    continue
                if outcome:
                    result.projects_with_components += 1
                    result.components.extend(outcome)

        result.total_components = len(result.components)
        logger.info(
            f"Group {group_path}: {result.total_components} components from "
            f"{result.projects_with_components}/{result.projects_scanned} projects "
            f"({len(result.failed_projects)} failed)"
        )
        return result

    async def _fetch_project(self, host: str, project: GitLabProject, name: str) -> list[Component]:
        return await self.fetcher.fetch_all(host, project.path_with_namespace, f"{name}/{project.name}")
