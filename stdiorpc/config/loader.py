"""Configuration loading utilities."""

import json
import os
from pathlib import Path
from typing import Any

from loguru import logger

from stdiorpc.config.schema import Config
from stdiorpc.utils.exceptions import ConfigError

CONFIG_ENV_VAR = "STDIORPC_CONFIG"


def get_config_path() -> Path:
    """Get the configuration file path (STDIORPC_CONFIG overrides the default)."""
    override = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".stdiorpc" / "config.json"


def get_data_dir() -> Path:
    """Get the stdiorpc data directory (logs live here)."""
    path = Path.home() / ".stdiorpc"
    path.mkdir(parents=True, exist_ok=True)
    return path


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file or create default.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("config file must be a JSON object")
            data = _migrate_config(data)
            return Config.model_validate(convert_keys(data))
        except (json.JSONDecodeError, ValueError) as e:
            raise ConfigError(
                f"Failed to load config from {path}: {e}. "
                "Fix the file or remove it to regenerate defaults."
            ) from e

    logger.debug("No config at {}, using defaults", path)
    return Config()


def save_config(config: Config, config_path: Path | None = None) -> None:
    """
    Save configuration to file.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = convert_to_camel(config.model_dump())

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def _migrate_config(data: dict) -> dict:
    """Accept the common `mcpServers` layout used by other stdio clients."""
    mcp_servers = data.pop("mcpServers", None)
    if isinstance(mcp_servers, dict):
        servers = data.setdefault("servers", {})
        if isinstance(servers, dict):
            for name, entry in mcp_servers.items():
                if isinstance(entry, dict) and name not in servers:
                    servers[name] = entry
    return data


# Keys whose children are user-chosen names (server names, env var names).
_VERBATIM_CHILD_KEYS = {"servers", "env"}


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case.
    Server names and env var names are preserved."""
    if isinstance(data, dict):
        result: dict[str, Any] = {}
        for k, v in data.items():
            new_k = camel_to_snake(k)
            if new_k in _VERBATIM_CHILD_KEYS and isinstance(v, dict):
                if new_k == "env":
                    result[new_k] = dict(v)
                else:
                    result[new_k] = {name: convert_keys(entry) for name, entry in v.items()}
            else:
                result[new_k] = convert_keys(v)
        return result
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """Convert snake_case keys to camelCase.
    Server names and env var names are preserved."""
    if isinstance(data, dict):
        result: dict[str, Any] = {}
        for k, v in data.items():
            new_k = snake_to_camel(k)
            if k in _VERBATIM_CHILD_KEYS and isinstance(v, dict):
                if k == "env":
                    result[new_k] = dict(v)
                else:
                    result[new_k] = {name: convert_to_camel(entry) for name, entry in v.items()}
            else:
                result[new_k] = convert_to_camel(v)
        return result
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.lower())
    return "".join(result)


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    components = name.split("_")
    return components[0] + "".join(x.title() for x in components[1:])
