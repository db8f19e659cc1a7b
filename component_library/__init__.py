"""Component catalog library.

This is the business logic layer behind componentd: a cached, versioned
catalog of GitLab CI/CD components.

Public Interface:
    Modules:
    - cache: Typed cache, version ordering and the catalog orchestrator
    - gitlab: HTTP transport, REST client, project and group fetching
    - storage: Durable snapshot storage and paths
    - config: Configuration loading
    - models: Shared data structures
"""

# Re-export key types for convenience
from .models import Component
from .models import ComponentParameter
from .models import SourceConfig

__all__ = [
    "Component",
    "ComponentParameter",
    "SourceConfig",
]
