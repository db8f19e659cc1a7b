"""GitLab access for the component catalog.

Public Interface:
    - HttpTransport: httpx transport with retries
    - GitLabClient: authenticated REST v4 client
    - SourceFetcher: components of one project
    - GroupScanner: components of every project in a group
    - CredentialStore and implementations: per-host tokens
    - parse_component_spec: template header parser
"""

from .client import GitLabClient
from .credentials import CredentialStore
from .credentials import EnvCredentialStore
from .credentials import FileCredentialStore
from .credentials import InMemoryCredentialStore
from .group_scanner import GroupScanner
from .group_scanner import GroupScanResult
from .http_client import HttpTransport
from .source_fetcher import SourceFetcher
from .spec_parser import ParsedSpec
from .spec_parser import parse_component_spec

__all__ = [
    "HttpTransport",
    "GitLabClient",
    "CredentialStore",
    "InMemoryCredentialStore",
    "EnvCredentialStore",
    "FileCredentialStore",
    "SourceFetcher",
    "GroupScanner",
    "GroupScanResult",
    "ParsedSpec",
    "parse_component_spec",
]
