"""Models for the component library."""

from .base import CamelCaseModel
from .components import DEFAULT_GITLAB_INSTANCE
from .components import Component
from .components import ComponentParameter
from .components import SourceConfig

__all__ = [
    "CamelCaseModel",
    "Component",
    "ComponentParameter",
    "SourceConfig",
    "DEFAULT_GITLAB_INSTANCE",
]
