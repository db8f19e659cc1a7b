"""Per-host GitLab token storage.

Tokens are looked up by normalized hostname and sent as PRIVATE-TOKEN.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from pathlib import Path
from typing import Protocol

from component_library.errors import PersistenceError
from component_library.storage.paths import get_state_dir
from component_library.utils.urls import normalize_host

logger = logging.getLogger(__name__)

ENV_TOKEN_PREFIX = "COMPONENTD_TOKEN_"
FALLBACK_TOKEN_ENV = "GITLAB_TOKEN"


class CredentialStore(Protocol):
    """Lookup and storage of access tokens by host."""

    async def get_token(self, host: str) -> str | None: ...

    async def set_token(self, host: str, token: str) -> None: ...


class InMemoryCredentialStore:
    """Process-local token map."""

    def __init__(self, tokens: dict[str, str] | None = None) -> None:
        self._tokens = {normalize_host(host): token for host, token in (tokens or {}).items()}

    async def get_token(self, host: str) -> str | None:
        return self._tokens.get(normalize_host(host))

    async def set_token(self, host: str, token: str) -> None:
        self._tokens[normalize_host(host)] = token


def env_var_for_host(host: str) -> str:
    """Environment variable holding the token for host.

    Examples:
        >>> env_var_for_host("gitlab.example.com")
        'COMPONENTD_TOKEN_GITLAB_EXAMPLE_COM'
    """
    return ENV_TOKEN_PREFIX + re.sub(r"[^A-Z0-9]", "_", normalize_host(host).upper())


class EnvCredentialStore:
    """Tokens from COMPONENTD_TOKEN_<HOST>, falling back to GITLAB_TOKEN.

    Tokens set at runtime are kept in memory and take precedence.
    """

    def __init__(self) -> None:
        self._overrides: dict[str, str] = {}

    async def get_token(self, host: str) -> str | None:
        host = normalize_host(host)
        if host in self._overrides:
            return self._overrides[host]
        return os.environ.get(env_var_for_host(host)) or os.environ.get(FALLBACK_TOKEN_ENV) or None

    async def set_token(self, host: str, token: str) -> None:
        self._overrides[normalize_host(host)] = token


class FileCredentialStore:
    """Tokens kept in a JSON file readable only by the owner."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or (get_state_dir() / "credentials.json")

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to read credentials from {self.path}: {e}", operation="read") from e
        return {str(host): str(token) for host, token in data.items()} if isinstance(data, dict) else {}

    async def get_token(self, host: str) -> str | None:
        tokens = await asyncio.to_thread(self._read)
        return tokens.get(normalize_host(host))

    async def set_token(self, host: str, token: str) -> None:
        await asyncio.to_thread(self._write, normalize_host(host), token)
        logger.info(f"Stored token for {normalize_host(host)}")

    def _write(self, host: str, token: str) -> None:
        tokens = self._read()
        tokens[host] = token

        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(".tmp")
        try:
            fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(tokens, f, indent=2)
            os.chmod(temp_path, 0o600)
            temp_path.replace(self.path)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise PersistenceError(f"Failed to write credentials to {self.path}: {e}") from e
