"""Helpers shared by CLI commands that talk to a configured server."""

from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import typer
from rich.console import Console
from rich.markup import escape

from stdiorpc.client.session import ClientSession
from stdiorpc.config.loader import load_config
from stdiorpc.config.schema import Config
from stdiorpc.utils.exceptions import StdioRpcError, sanitize_error_message


class CliState:
    """Options captured by the top-level callback; config is loaded once per invocation."""

    config_path: Path | None = None
    drain: bool = False
    config: Config | None = None


def cli_config() -> Config:
    if CliState.config is None:
        CliState.config = load_config(CliState.config_path)
    return CliState.config


def parse_json_object(raw: str | None, option: str) -> dict[str, Any]:
    """Parse a JSON object passed on the command line."""
    if raw is None or not raw.strip():
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"invalid JSON: {exc.msg}", param_hint=option) from exc
    if not isinstance(value, dict):
        raise typer.BadParameter("expected a JSON object", param_hint=option)
    return value


def resolve_server_name(server: str | None) -> str:
    cfg = cli_config()
    if server:
        return server
    if cfg.default_server:
        return cfg.default_server
    if len(cfg.servers) == 1:
        return next(iter(cfg.servers))
    return ""


def open_session(server: str | None) -> ClientSession:
    server_cfg = cli_config().get_server(server)
    return ClientSession(server_cfg, name=resolve_server_name(server) or "server")


def format_error(exc: StdioRpcError) -> str:
    """Sanitized, markup-safe error text for console output."""
    return escape(sanitize_error_message(str(exc)))


@contextmanager
def cli_session(console: Console, server: str | None) -> Iterator[ClientSession]:
    """Run a CLI body against a started session; errors exit with status 1."""
    session: ClientSession | None = None
    try:
        session = open_session(server).start()
        yield session
    except StdioRpcError as exc:
        console.print(f"[red]{format_error(exc)}[/red]")
        raise typer.Exit(1) from exc
    finally:
        if session is not None:
            session.close(drain_to=console.file if CliState.drain else None)
