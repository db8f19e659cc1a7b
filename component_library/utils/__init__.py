"""Utility helpers for the component library."""

from .urls import api_base_url
from .urls import component_url
from .urls import encode_path
from .urls import normalize_host

__all__ = [
    "api_base_url",
    "component_url",
    "encode_path",
    "normalize_host",
]
