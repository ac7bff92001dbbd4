"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars < CLI overrides
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from reposync.core.exceptions import ConfigurationError

from .models import SyncConfig

logger = logging.getLogger(__name__)

PROJECT_CONFIG_NAME = ".reposync.json"

# Env var -> (config key, parser)
ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "REPOSYNC_INTERVAL": ("interval_seconds", float),
    "REPOSYNC_REMOTE": ("remote", str),
    "REPOSYNC_BRANCH": ("upstream_branch", str),
    "REPOSYNC_LOCK_MAX_WAIT": ("lock_max_wait_seconds", float),
    "REPOSYNC_NETWORK_TIMEOUT": ("network_timeout_seconds", float),
    "REPOSYNC_LOG_FILE": ("log_file", str),
}


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """Path to ~/.config/reposync/config.json (or XDG equivalent)."""
    return get_xdg_config_home() / "reposync" / "config.json"


def get_project_config_path(repo_path: Path | None = None) -> Path:
    """Path to .reposync.json at the repository root."""
    if repo_path is None:
        repo_path = Path.cwd()
    return repo_path / PROJECT_CONFIG_NAME


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`.
    Nested dicts are merged, not replaced.

    Example:
        >>> deep_merge({"a": 1, "b": {"x": 10}}, {"b": {"y": 30}, "c": 3})
        {'a': 1, 'b': {'x': 10, 'y': 30}, 'c': 3}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            logger.warning("Ignoring config at %s: top level is not an object", path)
            return None
    except (json.JSONDecodeError, OSError) as e:
        # Config system should be resilient: warn and fall through to defaults
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply REPOSYNC_* environment variable overrides.

    Unparseable values are warned about and ignored.
    """
    result = config_dict.copy()

    for env_name, (key, parser) in ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is None or raw == "":
            continue
        try:
            result[key] = parser(raw)
        except ValueError:
            logger.warning("Invalid %s value '%s', ignoring", env_name, raw)

    return result


def get_default_config() -> dict[str, Any]:
    """Hardcoded defaults; everything else comes from SyncConfig field defaults."""
    return {
        "interval_seconds": 30.0,
        "remote": "origin",
    }


def load_config(
    repo_path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> SyncConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Explicit overrides (CLI flags); None values are ignored
        2. Environment variables (REPOSYNC_*)
        3. Project config (<repo>/.reposync.json)
        4. User config (~/.config/reposync/config.json)
        5. Hardcoded defaults

    Args:
        repo_path: Repository to load .reposync.json from (defaults to cwd)
        overrides: Highest-priority values, typically from the CLI

    Raises:
        ConfigurationError: If the merged config fails validation
    """
    resolved_repo = (repo_path or Path.cwd()).expanduser()

    merged = get_default_config()

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(resolved_repo)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    if overrides:
        merged = deep_merge(merged, {k: v for k, v in overrides.items() if v is not None})

    # The repository being synced is where the project config came from
    merged["repo_path"] = resolved_repo

    try:
        return SyncConfig(**merged)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
