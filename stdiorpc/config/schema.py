"""Configuration schema using Pydantic.

One file describes every stdio server the client may launch; persisted to
~/.stdiorpc/config.json.
"""

from typing import Literal

from pydantic import BaseModel, Field, ConfigDict
from pydantic_settings import BaseSettings

from stdiorpc.utils.exceptions import ConfigError


class ServerConfig(BaseModel):
    """How to launch and talk to one stdio server."""
    command: str = ""  # Executable path or name on PATH
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)  # Overrides layered over the inherited env; ${VAR} expands
    inherit_env: bool = True  # False starts the server with only `env`
    cwd: str | None = None
    request_timeout: float | None = 30.0  # Seconds per call; None waits forever
    shutdown_timeout: float = 5.0  # Seconds to wait for exit before killing
    strict_framing: bool = False  # True: any malformed frame closes the session
    serialize_calls: bool = True  # False allows overlapping calls demultiplexed by id
    description: str = ""


class Config(BaseSettings):
    """Root configuration for stdiorpc."""
    servers: dict[str, ServerConfig] = Field(default_factory=dict)
    default_server: str = ""
    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    client_name: str = "stdiorpc"

    def get_server(self, name: str | None = None) -> ServerConfig:
        """Return the named server, falling back to default_server or a lone entry."""
        key = (name or self.default_server or "").strip()
        if not key and len(self.servers) == 1:
            key = next(iter(self.servers))
        if not key:
            raise ConfigError("no server name given and no default_server configured", field="default_server")
        server = self.servers.get(key)
        if server is None:
            raise ConfigError(f"unknown server: {key}", field="servers")
        if not server.command.strip():
            raise ConfigError(f"server '{key}' has no command", field=f"servers.{key}.command")
        return server

    model_config = ConfigDict(
        env_prefix="STDIORPC_",
        env_nested_delimiter="__"
    )
