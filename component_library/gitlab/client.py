"""GitLab REST v4 client for the component catalog.

Builds endpoint URLs, attaches tokens and validates payloads. Network and
retry behavior lives in HttpTransport.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from collections.abc import Callable
from typing import Any
from typing import TypeVar

from component_library.errors import AuthRequiredError
from component_library.utils.urls import api_base_url
from component_library.utils.urls import encode_path
from component_library.utils.urls import normalize_host

from .api_models import GitLabProject
from .api_models import GitLabTag
from .api_models import GitLabTreeItem
from .api_models import validate_list
from .api_models import validate_payload
from .credentials import CredentialStore
from .credentials import InMemoryCredentialStore
from .http_client import HttpTransport

logger = logging.getLogger(__name__)

T = TypeVar("T")

TEMPLATES_DIR = "templates"
TokenPrompt = Callable[[str], Awaitable[str | None]]


class GitLabClient:
    """Authenticated access to the GitLab endpoints the catalog needs."""

    def __init__(
        self,
        transport: HttpTransport,
        credentials: CredentialStore | None = None,
        *,
        token_prompt: TokenPrompt | None = None,
        per_page: int = 100,
    ) -> None:
        """Initialize client.

        Args:
            transport: HTTP transport
            credentials: Token store (default: empty in-memory store)
            token_prompt: Async callback asked for a token when a host refuses a request
            per_page: Page size for list endpoints
        """
        self.transport = transport
        self.credentials = credentials if credentials is not None else InMemoryCredentialStore()
        self.token_prompt = token_prompt
        self.per_page = per_page

    async def _auth_headers(self, host: str) -> dict[str, str]:
        token = await self.credentials.get_token(host)
        return {"PRIVATE-TOKEN": token} if token else {}

    async def _with_auth(self, host: str, call: Callable[[dict[str, str]], Awaitable[T]]) -> T:
        """Run call with the host token; on refusal ask for a token and retry once."""
        try:
            return await call(await self._auth_headers(host))
        except AuthRequiredError:
            if self.token_prompt is None:
                raise
            logger.info(f"Authentication required for {host}, requesting token")
            token = await self.token_prompt(host)
            if not token:
                raise
            await self.credentials.set_token(host, token)
            return await call(await self._auth_headers(host))

    async def get_json(self, host: str, endpoint: str) -> Any:
        host = normalize_host(host)
        url = f"{api_base_url(host)}{endpoint}"
        return await self._with_auth(host, lambda headers: self.transport.fetch_json(url, headers))

    async def get_text(self, host: str, endpoint: str) -> str:
        host = normalize_host(host)
        url = f"{api_base_url(host)}{endpoint}"
        return await self._with_auth(host, lambda headers: self.transport.fetch_text(url, headers))

    async def get_pages(self, host: str, endpoint: str) -> list[Any]:
        host = normalize_host(host)
        url = f"{api_base_url(host)}{endpoint}"
        return await self._with_auth(host, lambda headers: self.transport.fetch_json_pages(url, headers))

    # --- Endpoints ---

    async def fetch_project(self, host: str, project_path: str) -> GitLabProject:
        payload = await self.get_json(host, f"/projects/{encode_path(project_path)}")
        return validate_payload(GitLabProject, payload, "project")

    async def fetch_template_tree(self, host: str, project_path: str, ref: str) -> list[GitLabTreeItem]:
        """List the templates/ directory of a project at ref."""
        payload = await self.get_json(
            host,
            f"/projects/{encode_path(project_path)}/repository/tree"
            f"?path={TEMPLATES_DIR}&ref={encode_path(ref)}&per_page={self.per_page}",
        )
        return validate_list(GitLabTreeItem, payload, "repository tree")

    async def fetch_template(self, host: str, project_path: str, filename: str, ref: str) -> str:
        """Raw content of templates/{filename} at ref."""
        file_id = encode_path(f"{TEMPLATES_DIR}/{filename}")
        return await self.get_text(
            host, f"/projects/{encode_path(project_path)}/repository/files/{file_id}/raw?ref={encode_path(ref)}"
        )

    async def fetch_project_tags(self, host: str, project_path: str) -> list[str]:
        """Tag names, most recently updated first."""
        payload = await self.get_json(
            host,
            f"/projects/{encode_path(project_path)}/repository/tags"
            f"?per_page={self.per_page}&order_by=updated&sort=desc",
        )
        return [tag.name for tag in validate_list(GitLabTag, payload, "tag list")]

    async def fetch_group_projects(self, host: str, group_path: str) -> list[GitLabProject]:
        """Every project in a group and its subgroups."""
        payload = await self.get_pages(
            host,
            f"/groups/{encode_path(group_path)}/projects?per_page={self.per_page}&include_subgroups=true",
        )
        return validate_list(GitLabProject, payload, "group project list")
