"""HTTP transport for the GitLab REST API.

Wraps httpx.AsyncClient with tenacity retries and maps HTTP failures onto the
catalog error taxonomy.

Contract:
- 5xx, 429 and network failures are retried with exponential backoff and jitter
- 4xx responses are never retried
- 401/403 raise AuthRequiredError, other non-2xx raise TransportError
- Bodies that are not valid JSON raise ParseError
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import AsyncRetrying
from tenacity import retry_if_exception
from tenacity import stop_after_attempt
from tenacity import wait_random_exponential

from component_library.errors import AuthRequiredError
from component_library.errors import ParseError
from component_library.errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "componentd/0.1 (GitLab component catalog)"
MAX_BACKOFF_SECONDS = 30.0
MAX_PAGES = 50


def is_retryable(error: BaseException) -> bool:
    """Whether a transport failure is worth another attempt."""
    if isinstance(error, AuthRequiredError):
        return False
    if not isinstance(error, TransportError):
        return False
    if error.status_code is None:
        return True
    return error.status_code == 429 or error.status_code >= 500


class HttpTransport:
    """GET-only JSON/text transport with retries."""

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        retry_attempts: int = 3,
        retry_base_delay: float = 1.0,
        user_agent: str = DEFAULT_USER_AGENT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize transport.

        Args:
            timeout: Per-request timeout in seconds
            retry_attempts: Retries after the first attempt for retryable failures
            retry_base_delay: Backoff multiplier in seconds
            user_agent: User-Agent header sent with every request
            client: Optional pre-configured client (tests pass one with a MockTransport)
        """
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.retry_base_delay = retry_base_delay
        self.user_agent = user_agent
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), follow_redirects=True)
        return self._client

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def _send_once(self, url: str, headers: dict[str, str] | None) -> httpx.Response:
        request_headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
        if headers:
            request_headers.update(headers)

        try:
            response = await self._get_client().get(url, headers=request_headers)
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timed out after {self.timeout}s: {url}", url=url) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Network error for {url}: {e}", url=url) from e

        if response.status_code in (401, 403):
            raise AuthRequiredError(
                f"HTTP {response.status_code} for {url}",
                status_code=response.status_code,
                url=url,
                host=response.request.url.host,
            )
        if not response.is_success:
            raise TransportError(
                f"HTTP {response.status_code}: {response.reason_phrase} for {url}",
                status_code=response.status_code,
                url=url,
            )
        return response

    async def _send(self, url: str, headers: dict[str, str] | None) -> httpx.Response:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts + 1),
            wait=wait_random_exponential(multiplier=self.retry_base_delay, max=MAX_BACKOFF_SECONDS),
            retry=retry_if_exception(is_retryable),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.debug(f"Retrying {url} (attempt {attempt.retry_state.attempt_number})")
                return await self._send_once(url, headers)
        raise AssertionError("unreachable")

    @staticmethod
    def _decode_json(response: httpx.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"Invalid JSON from {url}: {e}", source=response.text) from e

    async def fetch_json(self, url: str, headers: dict[str, str] | None = None) -> Any:
        """GET url and decode the JSON body."""
        response = await self._send(url, headers)
        return self._decode_json(response, url)

    async def fetch_text(self, url: str, headers: dict[str, str] | None = None) -> str:
        """GET url and return the body as text."""
        response = await self._send(url, headers)
        return response.text

    async def fetch_json_pages(self, url: str, headers: dict[str, str] | None = None) -> list[Any]:
        """GET every page of a paginated list endpoint.

        Follows the X-Next-Page header until it is empty.

        Raises:
            ParseError: If a page is not a JSON list
        """
        items: list[Any] = []
        next_url: str | None = url
        pages = 0

        while next_url is not None and pages < MAX_PAGES:
            response = await self._send(next_url, headers)
            page = self._decode_json(response, next_url)
            if not isinstance(page, list):
                raise ParseError(f"Expected a list from {next_url}, got {type(page).__name__}")
            items.extend(page)
            pages += 1

            next_page = response.headers.get("X-Next-Page", "").strip()
            next_url = str(httpx.URL(url).copy_merge_params({"page": next_page})) if next_page else None

        if next_url is not None:
            logger.warning(f"Stopped paginating {url} after {MAX_PAGES} pages")

        return items
