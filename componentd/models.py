"""Request and response models for componentd API."""

from pydantic import Field

from component_library.models.base import CamelCaseModel
from component_library.models.components import Component


class ComponentsResponse(CamelCaseModel):
    """Current component list.

    Attributes:
        components: Components, possibly stale while a refresh runs
        refresh_in_progress: Whether a background refresh is running
        has_errors: Whether any source failed during the last refresh
    """

    components: list[Component] = Field(default_factory=list, description="Cached components")
    refresh_in_progress: bool = Field(False, description="Whether a refresh is running")
    has_errors: bool = Field(False, description="Whether any source failed")


class OperationResponse(CamelCaseModel):
    """Result of a cache operation."""

    status: str = Field(..., description="Operation outcome")
    components_count: int = Field(0, description="Components after the operation")
    source_errors: dict[str, str] = Field(default_factory=dict, description="Failing sources")


class SourceErrorsResponse(CamelCaseModel):
    errors: dict[str, str] = Field(default_factory=dict, description="Source name to error message")
    has_errors: bool = Field(False, description="Whether any source failed")


class VersionsRequest(CamelCaseModel):
    """Identify a component whose versions should be listed."""

    name: str = Field(..., description="Component name")
    source_path: str = Field(..., description="Project path")
    gitlab_instance: str = Field("gitlab.com", description="GitLab host")
    version: str = Field("main", description="Version returned when versions can't be fetched")


class VersionsResponse(CamelCaseModel):
    versions: list[str] = Field(default_factory=list, description="Versions, highest priority first")

