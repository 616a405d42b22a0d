"""Configuration module for stdiorpc."""

from stdiorpc.config.loader import load_config, get_config_path, save_config
from stdiorpc.config.schema import Config, ServerConfig

__all__ = [
    "Config",
    "ServerConfig",
    "load_config",
    "save_config",
    "get_config_path",
]
