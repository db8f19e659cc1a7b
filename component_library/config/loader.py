"""Configuration loading for the component catalog.

This module handles loading catalog configuration from YAML files
and environment variables.

Contract:
- Inputs: Config file paths, environment variables
- Outputs: CatalogSettings objects
- Side Effects: Creates default config file if missing
"""

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from component_library.errors import ConfigurationError

from ..storage.paths import get_config_dir
from .settings import CatalogSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = """# componentd configuration
# Environment variables prefixed with COMPONENTD_ override these values

# Server settings
host: "127.0.0.1"
port: 8430
log_level: "info"

# Component cache TTL in seconds; versions use cache_time * version_cache_multiplier
cache_time: 3600
version_cache_multiplier: 4

# Remote API behavior
batch_size: 5
http_timeout: 10
retry_attempts: 3

# Sources to scan for components
# component_sources:
#   - name: "Shared CI components"
#     path: "my-group/ci-components"
#     gitlab_instance: "gitlab.com"
#     type: "project"
#   - name: "Platform team"
#     path: "platform"
#     type: "group"
component_sources: []
"""


def get_config_path() -> Path:
    """Get path to config file.

    Returns:
        Path to catalog.yaml in config directory
    """
    return get_config_dir() / "catalog.yaml"


def create_default_config(config_path: Path | None = None) -> None:
    """Create default config file if it doesn't exist."""
    config_path = config_path or get_config_path()

    if config_path.exists():
        logger.debug(f"Config file already exists: {config_path}")
        return

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(DEFAULT_CONFIG, encoding="utf-8")
    logger.info(f"Created default config: {config_path}")


def load_config(config_path: Path | None = None) -> CatalogSettings:
    """Load catalog configuration from YAML and environment.

    Environment variables take precedence over YAML settings.
    Variables should be prefixed with COMPONENTD_ (e.g., COMPONENTD_CACHE_TIME).

    Args:
        config_path: Optional config file path (default: catalog.yaml in config dir)

    Returns:
        Validated catalog settings

    Raises:
        ConfigurationError: If the merged settings fail validation
    """
    if config_path is None:
        config_path = get_config_path()

    if not config_path.exists():
        create_default_config(config_path)

    yaml_settings = {}
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                yaml_settings = yaml.safe_load(f) or {}
            logger.debug(f"Loaded config from {config_path}")
        except Exception as e:
            logger.warning(f"Failed to load config from {config_path}: {e}")
            logger.info("Using default settings and environment variables")

    # Only pass YAML values that don't have corresponding env vars
    filtered_yaml = {}
    for key, value in yaml_settings.items():
        env_key = f"COMPONENTD_{key.upper()}"
        if env_key not in os.environ:
            filtered_yaml[key] = value

    try:
        settings = CatalogSettings(**filtered_yaml)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

    logger.info(
        f"Catalog configuration loaded: {len(settings.component_sources)} sources, "
        f"cache_time={settings.cache_time}s, batch_size={settings.batch_size}"
    )

    return settings
