"""Models for GitLab REST v4 payloads.

Only the fields the catalog reads are declared; everything else is ignored.
"""

from __future__ import annotations

from typing import Any
from typing import TypeVar

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import ValidationError

from component_library.errors import ParseError

M = TypeVar("M", bound="GitLabModel")


class GitLabModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GitLabProject(GitLabModel):
    """Project as returned by /projects/:id and /groups/:id/projects."""

    id: int
    name: str
    path_with_namespace: str
    default_branch: str | None = None
    description: str | None = None


class GitLabTreeItem(GitLabModel):
    """Entry of /projects/:id/repository/tree."""

    name: str
    type: str
    path: str


class GitLabTag(GitLabModel):
    """Entry of /projects/:id/repository/tags."""

    name: str


def validate_payload(model: type[M], payload: Any, what: str) -> M:
    """Validate one decoded object.

    Raises:
        ParseError: If the payload does not match the model
    """
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise ParseError(f"Unexpected {what} payload: {e.error_count()} validation errors", source=str(payload)) from e


def validate_list(model: type[M], payload: Any, what: str) -> list[M]:
    """Validate a decoded JSON array item by item.

    Raises:
        ParseError: If the payload is not a list or an item does not match the model
    """
    if not isinstance(payload, list):
        raise ParseError(f"Unexpected {what} payload: expected a list", source=str(payload))
    return [validate_payload(model, item, what) for item in payload]
