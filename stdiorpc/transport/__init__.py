"""Transports carrying line-framed messages to a server process."""

from .process import ProcessTransport, build_environment, expand_env_refs

__all__ = ["ProcessTransport", "build_environment", "expand_env_refs"]
