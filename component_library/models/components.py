"""Component and source models.

Components are the cached unit of the catalog: one template from one
GitLab project at one version. Sources describe where components come from.
"""

from typing import Any
from typing import Literal

from pydantic import Field

from .base import CamelCaseModel

DEFAULT_GITLAB_INSTANCE = "gitlab.com"


class ComponentParameter(CamelCaseModel):
    """One input of a component template."""

    name: str = Field(..., description="Input name")
    description: str = Field("", description="Human-readable description")
    required: bool = Field(False, description="Whether the input has no default")
    type: str = Field("string", description="Declared input type")
    default: Any | None = Field(None, description="Default value if declared")


class Component(CamelCaseModel):
    """A named, versioned, parameterized template fetched from a source.

    Identity for deduplication is (name, source_path, gitlab_instance, version).
    """

    name: str = Field(..., description="Component name (template file stem)")
    description: str = Field("", description="Component description")
    parameters: list[ComponentParameter] = Field(default_factory=list, description="Template inputs")
    source: str = Field(..., description="Display name of the source it came from")
    source_path: str = Field(..., description="Project path on the GitLab instance")
    gitlab_instance: str = Field(DEFAULT_GITLAB_INSTANCE, description="GitLab hostname")
    version: str = Field(..., description="Ref the component was read at")
    url: str = Field(..., description="Include URL for the component")
    available_versions: list[str] | None = Field(None, description="Known versions, highest priority first")

    @property
    def identity(self) -> tuple[str, str, str, str]:
        """Deduplication key."""
        return (self.name, self.source_path, self.gitlab_instance, self.version)

    def same_project_component(self, other: "Component") -> bool:
        """Whether both refer to the same component regardless of version."""
        return (
            self.name == other.name
            and self.source_path == other.source_path
            and self.gitlab_instance == other.gitlab_instance
        )


class SourceConfig(CamelCaseModel):
    """A configured remote location holding components.

    Attributes:
        name: Display name used in error reports and component.source
        path: Project or group path (e.g., "my-group/my-project")
        gitlab_instance: Hostname, optionally with scheme
        type: "project" for one project, "group" to scan every project below it
    """

    name: str
    path: str
    gitlab_instance: str = DEFAULT_GITLAB_INSTANCE
    type: Literal["project", "group"] = "project"
