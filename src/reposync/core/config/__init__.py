"""
Configuration model and loading.

Layered: defaults < user < project < env vars < CLI flags.
"""

from .env import load_layered_env
from .loader import (
    get_project_config_path,
    get_user_config_path,
    get_xdg_config_home,
    load_config,
)
from .models import SyncConfig

__all__ = [
    "SyncConfig",
    "get_project_config_path",
    "get_user_config_path",
    "get_xdg_config_home",
    "load_config",
    "load_layered_env",
]
