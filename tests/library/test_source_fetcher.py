"""
Unit tests for GitLab client, source fetching and group scanning.

A fake GitLab API is served through httpx.MockTransport.
"""

import asyncio
import json
from collections.abc import Callable
from unittest.mock import AsyncMock

import httpx
import pytest

from component_library.cache.models import CacheNamespace
from component_library.cache.typed_cache import TypedCache
from component_library.errors import AuthRequiredError
from component_library.errors import TransportError
from component_library.gitlab.api_models import GitLabProject
from component_library.gitlab.client import GitLabClient
from component_library.gitlab.credentials import InMemoryCredentialStore
from component_library.gitlab.group_scanner import GroupScanner
from component_library.gitlab.http_client import HttpTransport
from component_library.gitlab.source_fetcher import SourceFetcher
from component_library.models.components import Component

API = "/api/v4"

TEMPLATE = """# Run unit tests
spec:
  inputs:
    stage:
      default: test
    image:
      description: Test image
---
unit-test:
  script: [make test]
"""


class FakeGitLab:
    """Routes raw request paths to canned responses."""

    def __init__(self) -> None:
        self.routes: dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def json(self, path: str, payload, headers: dict[str, str] | None = None) -> None:
        self.routes[path] = lambda request: httpx.Response(200, json=payload, headers=headers)

    def text(self, path: str, body: str) -> None:
        self.routes[path] = lambda request: httpx.Response(200, text=body)

    def status(self, path: str, status: int) -> None:
        self.routes[path] = lambda request: httpx.Response(status)

    def add_project(self, path: str, templates: dict[str, str], *, tags: list[str] | None = None, ref: str = "main") -> None:
        encoded = path.replace("/", "%2F")
        self.json(f"{API}/projects/{encoded}", {"id": len(self.routes) + 1, "name": path.split("/")[-1], "path_with_namespace": path, "default_branch": ref})
        self.json(
            f"{API}/projects/{encoded}/repository/tree",
            [{"name": name, "type": "blob", "path": f"templates/{name}"} for name in templates],
        )
        for name, body in templates.items():
            self.text(f"{API}/projects/{encoded}/repository/files/templates%2F{name}/raw", body)
        self.json(f"{API}/projects/{encoded}/repository/tags", [{"name": tag} for tag in tags or []])

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.raw_path.decode().split("?")[0]
        if path in self.routes:
            return self.routes[path](request)
        return httpx.Response(404, json={"message": "404 Not Found"})

    def paths(self) -> list[str]:
        return [request.url.raw_path.decode().split("?")[0] for request in self.requests]


@pytest.fixture
def gitlab() -> FakeGitLab:
    return FakeGitLab()


@pytest.fixture
def client(gitlab: FakeGitLab) -> GitLabClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(gitlab.handler))
    transport = HttpTransport(retry_attempts=0, retry_base_delay=0, client=http)
    return GitLabClient(transport, InMemoryCredentialStore({"gitlab.com": "glpat-test"}))


@pytest.fixture
def fetcher(client: GitLabClient, typed_cache: TypedCache) -> SourceFetcher:
    return SourceFetcher(client, typed_cache, batch_size=2)


@pytest.mark.unit
class TestGitLabClient:
    """Test authentication handling."""

    @pytest.mark.asyncio
    async def test_sends_private_token(self, gitlab: FakeGitLab, client: GitLabClient) -> None:
        gitlab.add_project("group/project", {})

        await client.fetch_project("gitlab.com", "group/project")

        assert gitlab.requests[0].headers["PRIVATE-TOKEN"] == "glpat-test"

    @pytest.mark.asyncio
    async def test_token_prompt_retries_once(self, gitlab: FakeGitLab) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            gitlab.requests.append(request)
            if request.headers.get("PRIVATE-TOKEN") != "fresh":
                return httpx.Response(401)
            return httpx.Response(200, json=[{"name": "v1.0.0"}])

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        credentials = InMemoryCredentialStore()
        prompt = AsyncMock(return_value="fresh")
        client = GitLabClient(HttpTransport(retry_attempts=0, client=http), credentials, token_prompt=prompt)

        tags = await client.fetch_project_tags("https://gitlab.example.com/", "group/project")

        assert tags == ["v1.0.0"]
        prompt.assert_awaited_once_with("gitlab.example.com")
        assert await credentials.get_token("gitlab.example.com") == "fresh"
        assert len(gitlab.requests) == 2

    @pytest.mark.asyncio
    async def test_auth_error_without_prompt_propagates(self, gitlab: FakeGitLab, client: GitLabClient) -> None:
        gitlab.status(f"{API}/projects/group%2Fprivate", 403)

        with pytest.raises(AuthRequiredError):
            await client.fetch_project("gitlab.com", "group/private")


@pytest.mark.unit
class TestSourceFetcher:
    """Test project catalog fetching."""

    @pytest.mark.asyncio
    async def test_fetch_all_builds_components(self, gitlab: FakeGitLab, fetcher: SourceFetcher) -> None:
        gitlab.add_project("group/project", {"unit-test.yml": TEMPLATE, "lint.yaml": TEMPLATE, "README.md": "x"})

        components = await fetcher.fetch_all("https://gitlab.com/", "group/project", "CI Library")

        assert sorted(c.name for c in components) == ["lint", "unit-test"]
        component = next(c for c in components if c.name == "unit-test")
        assert component.source == "CI Library"
        assert component.gitlab_instance == "gitlab.com"
        assert component.version == "main"
        assert component.url == "https://gitlab.com/group/project/unit-test@main"
        assert component.description == "Run unit tests"
        assert {p.name: p.required for p in component.parameters} == {"stage": False, "image": True}

    @pytest.mark.asyncio
    async def test_uses_default_branch(self, gitlab: FakeGitLab, fetcher: SourceFetcher) -> None:
        gitlab.add_project("group/legacy", {"deploy.yml": TEMPLATE}, ref="master")

        components = await fetcher.fetch_all("gitlab.com", "group/legacy", "Legacy")

        assert components[0].version == "master"
        assert any("ref=master" in str(request.url) for request in gitlab.requests)

    @pytest.mark.asyncio
    async def test_skips_templates_without_spec(self, gitlab: FakeGitLab, fetcher: SourceFetcher) -> None:
        gitlab.add_project("group/project", {"job.yml": TEMPLATE, "anchors.yml": ".common:\n  image: alpine\n"})

        components = await fetcher.fetch_all("gitlab.com", "group/project", "Src")

        assert [c.name for c in components] == ["job"]

    @pytest.mark.asyncio
    async def test_project_without_templates_dir(self, gitlab: FakeGitLab, fetcher: SourceFetcher) -> None:
        gitlab.add_project("group/empty", {})
        gitlab.status(f"{API}/projects/group%2Fempty/repository/tree", 404)

        assert await fetcher.fetch_all("gitlab.com", "group/empty", "Empty") == []

    @pytest.mark.asyncio
    async def test_missing_project_raises(self, fetcher: SourceFetcher) -> None:
        with pytest.raises(TransportError) as exc_info:
            await fetcher.fetch_all("gitlab.com", "group/missing", "Missing")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_catalog_is_cached(self, gitlab: FakeGitLab, fetcher: SourceFetcher, typed_cache: TypedCache) -> None:
        gitlab.add_project("group/project", {"job.yml": TEMPLATE})

        await fetcher.fetch_all("gitlab.com", "group/project", "Src")
        request_count = len(gitlab.requests)
        await fetcher.fetch_all("gitlab.com", "group/project", "Src")

        assert len(gitlab.requests) == request_count
        assert typed_cache.keys(CacheNamespace.CATALOG) == ["gitlab.com/group/project"]

    @pytest.mark.asyncio
    async def test_serves_stale_catalog_when_refresh_fails(self, gitlab: FakeGitLab, fetcher: SourceFetcher, clock) -> None:
        gitlab.add_project("group/project", {"job.yml": TEMPLATE})
        await fetcher.fetch_all("gitlab.com", "group/project", "Src")

        clock.advance(7200)
        gitlab.status(f"{API}/projects/group%2Fproject", 500)

        components = await fetcher.fetch_all("gitlab.com", "group/project", "Src")
        assert [c.name for c in components] == ["job"]

    @pytest.mark.asyncio
    async def test_fetch_versions(self, gitlab: FakeGitLab, fetcher: SourceFetcher) -> None:
        gitlab.add_project("group/project", {}, tags=["v1.0.0", "v2.0.0", "main"])

        assert await fetcher.fetch_versions("gitlab.com", "group/project") == ["main", "master", "v2.0.0", "v1.0.0"]


@pytest.mark.unit
class TestFetchPinned:
    """Test pinned-version fetching."""

    @pytest.mark.asyncio
    async def test_returns_component_at_tag(self, gitlab: FakeGitLab, fetcher: SourceFetcher) -> None:
        gitlab.add_project("group/project", {"job.yml": TEMPLATE}, tags=["v1.2.0"])

        component = await fetcher.fetch_pinned("job", "group/project", "gitlab.com", "v1.2.0")

        assert component is not None
        assert component.version == "v1.2.0"
        assert component.source == "Components from group/project"
        assert component.url == "https://gitlab.com/group/project/job@v1.2.0"
        assert any("ref=v1.2.0" in str(request.url) for request in gitlab.requests)

    @pytest.mark.asyncio
    async def test_unknown_version_returns_none(self, gitlab: FakeGitLab, fetcher: SourceFetcher) -> None:
        gitlab.add_project("group/project", {"job.yml": TEMPLATE}, tags=["v1.2.0"])

        assert await fetcher.fetch_pinned("job", "group/project", "gitlab.com", "v9.9.9") is None
        assert not any("/repository/tree" in path for path in gitlab.paths())

    @pytest.mark.asyncio
    async def test_unknown_component_returns_none(self, gitlab: FakeGitLab, fetcher: SourceFetcher) -> None:
        gitlab.add_project("group/project", {"job.yml": TEMPLATE})

        assert await fetcher.fetch_pinned("other", "group/project", "gitlab.com", "main") is None

    @pytest.mark.asyncio
    async def test_transport_failure_raises(self, gitlab: FakeGitLab, fetcher: SourceFetcher) -> None:
        gitlab.status(f"{API}/projects/group%2Fproject/repository/tags", 500)

        with pytest.raises(TransportError):
            await fetcher.fetch_pinned("job", "group/project", "gitlab.com", "main")




@pytest.mark.unit
class TestGroupScanner:
    """Test group expansion and batching."""

    @pytest.mark.asyncio
    async def test_twelve_children_run_in_batches(self, client: GitLabClient, typed_cache: TypedCache) -> None:
        """12 children run as batches of 5, 5 and 2; a failing child is skipped."""
        client.fetch_group_projects = AsyncMock(  # type: ignore[method-assign]
            return_value=[GitLabProject(id=index, name=f"p{index:02d}", path_with_namespace=f"g/p{index:02d}") for index in range(12)]
        )
        fetcher = SourceFetcher(client, typed_cache)
        active = {"count": 0}
        active_at_start: list[int] = []

        async def fake_fetch_all(host: str, path: str, name: str):
            active["count"] += 1
            active_at_start.append(active["count"])
            try:
                await asyncio.sleep(0)
                if path == "g/p07":
                    raise TransportError("boom", status_code=500)
                return [
                    Component(
                        name="job", source=name, source_path=path, gitlab_instance=host, version="main", url=f"{path}/job"
                    )
                ]
            finally:
                active["count"] -= 1

        fetcher.fetch_all = fake_fetch_all  # type: ignore[method-assign]
        scanner = GroupScanner(client, fetcher, batch_size=5)

        result = await scanner.scan("gitlab.com", "g", "Group")

        assert active_at_start == [1, 2, 3, 4, 5, 1, 2, 3, 4, 5, 1, 2]
        assert result.projects_scanned == 12
        assert result.failed_projects == ["g/p07"]
        assert result.projects_with_components == 11
        assert result.total_components == 11
        assert result.components[0].source == "Group/p00"

    @pytest.mark.asyncio
    async def test_scans_real_projects(self, gitlab: FakeGitLab, client: GitLabClient, typed_cache: TypedCache) -> None:
        gitlab.json(
            f"{API}/groups/platform/projects",
            [
                {"id": 1, "name": "build", "path_with_namespace": "platform/build"},
                {"id": 2, "name": "empty", "path_with_namespace": "platform/empty"},
                {"id": 3, "name": "broken", "path_with_namespace": "platform/broken"},
            ],
        )
        gitlab.add_project("platform/build", {"docker.yml": TEMPLATE})
        gitlab.add_project("platform/empty", {})
        gitlab.status(f"{API}/projects/platform%2Fbroken", 500)

        result = await GroupScanner(client, SourceFetcher(client, typed_cache)).scan("gitlab.com", "platform", "Platform")

        assert [c.name for c in result.components] == ["docker"]
        assert result.components[0].source == "Platform/build"
        assert result.projects_scanned == 3
        assert result.projects_with_components == 1
        assert result.failed_projects == ["platform/broken"]

    @pytest.mark.asyncio
    async def test_group_listing_failure_raises(self, gitlab: FakeGitLab, client: GitLabClient, typed_cache: TypedCache) -> None:
        gitlab.status(f"{API}/groups/missing/projects", 404)
        scanner = GroupScanner(client, SourceFetcher(client, typed_cache))

        with pytest.raises(TransportError):
            await scanner.scan("gitlab.com", "missing", "Missing")

    @pytest.mark.asyncio
    async def test_paginated_group_listing(self, gitlab: FakeGitLab, client: GitLabClient, typed_cache: TypedCache) -> None:
        def projects_page(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("page") == "2":
                payload = [{"id": 2, "name": "b", "path_with_namespace": "g/b"}]
                return httpx.Response(200, content=json.dumps(payload), headers={"X-Next-Page": ""})
            payload = [{"id": 1, "name": "a", "path_with_namespace": "g/a"}]
            return httpx.Response(200, content=json.dumps(payload), headers={"X-Next-Page": "2"})

        gitlab.routes[f"{API}/groups/g/projects"] = projects_page
        gitlab.add_project("g/a", {"one.yml": TEMPLATE})
        gitlab.add_project("g/b", {"two.yml": TEMPLATE})

        result = await GroupScanner(client, SourceFetcher(client, typed_cache)).scan("gitlab.com", "g", "G")

        assert sorted(c.name for c in result.components) == ["one", "two"]
        assert sorted(c.source for c in result.components) == ["G/a", "G/b"]
