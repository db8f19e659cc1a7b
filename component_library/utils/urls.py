"""GitLab URL utilities.

Shared logic for host normalization and component include URLs.
"""

from __future__ import annotations

from urllib.parse import quote


def normalize_host(gitlab_instance: str) -> str:
    """Strip scheme prefixes and trailing slashes from a GitLab host.

    Examples:
        >>> normalize_host("https://gitlab.example.com/")
        'gitlab.example.com'

        >>> normalize_host("gitlab.com")
        'gitlab.com'
    """
    host = gitlab_instance.strip()
    for prefix in ("https://", "http://"):
        if host.startswith(prefix):
            host = host[len(prefix) :]
    return host.rstrip("/")


def api_base_url(gitlab_instance: str) -> str:
    """Base URL of the GitLab REST v4 API for a host."""
    return f"https://{normalize_host(gitlab_instance)}/api/v4"


def encode_path(path: str) -> str:
    """URL-encode a project or group path for use as an API id."""
    return quote(path, safe="")


def component_url(gitlab_instance: str, project_path: str, name: str, version: str) -> str:
    """Build the include URL of a component at a version."""
    return f"https://{normalize_host(gitlab_instance)}/{project_path}/{name}@{version}"
