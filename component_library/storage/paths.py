"""Path resolution for componentd storage locations.

This module provides path resolution based on the COMPONENTD_HOME environment
variable, following an XDG-like directory structure within that root.

Contract:
- Inputs: Environment variables (COMPONENTD_HOME and per-directory overrides)
- Outputs: Resolved Path objects
- Side Effects: Creates directories if they don't exist
"""

import os
from pathlib import Path


def get_home_dir() -> Path:
    """Get COMPONENTD_HOME from environment.

    Returns:
        Path to root directory (default: .componentd)
    """
    root = os.environ.get("COMPONENTD_HOME", ".componentd")
    return Path(root).resolve()


def _resolve_dir(name: str, env_var: str) -> Path:
    directory: Path = get_home_dir() / name

    env_override: str | None = os.environ.get(env_var)
    if env_override is not None:
        directory = Path(env_override).resolve()

    directory.mkdir(parents=True, exist_ok=True)
    return directory


def get_config_dir() -> Path:
    """Get configuration directory.

    Returns:
        Path to config directory ($COMPONENTD_HOME/config)
    """
    return _resolve_dir("config", "COMPONENTD_CONFIG_DIR")


def get_state_dir() -> Path:
    """Get state directory (credentials and other small durable state).

    Returns:
        Path to state directory ($COMPONENTD_HOME/state)
    """
    return _resolve_dir("state", "COMPONENTD_STATE_DIR")


def get_cache_dir() -> Path:
    """Get cache directory holding persisted snapshots.

    Returns:
        Path to cache directory ($COMPONENTD_HOME/cache)

    Environment Variables:
        COMPONENTD_CACHE_DIR: Override cache directory location
    """
    return _resolve_dir("cache", "COMPONENTD_CACHE_DIR")


def get_log_dir() -> Path:
    """Get log directory.

    Returns:
        Path to log directory ($COMPONENTD_HOME/logs)
    """
    return _resolve_dir("logs", "COMPONENTD_LOG_DIR")
