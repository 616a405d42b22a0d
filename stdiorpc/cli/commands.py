"""CLI commands for stdiorpc.

Top-level options (config path, verbosity, drain) are captured in the app
callback, which also loads the config once; `call` and `servers` live here,
the tools group is registered from command_groups.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from stdiorpc import __logo__, __version__
from stdiorpc.cli.command_groups.tools_command import register_tools_commands
from stdiorpc.cli.shared.logging_utils import configure_console_logging, ensure_rotating_log_file
from stdiorpc.cli.shared.session_utils import CliState, cli_config, cli_session, format_error, parse_json_object
from stdiorpc.config.loader import get_config_path
from stdiorpc.utils.exceptions import StdioRpcError

app = typer.Typer(
    name="stdiorpc",
    help=f"{__logo__} stdiorpc - JSON-RPC client for stdio servers",
    no_args_is_help=True,
)

console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"{__logo__} stdiorpc v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Path = typer.Option(None, "--config", "-c", help="Path to config.json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log protocol traffic to stderr"),
    drain: bool = typer.Option(False, "--drain/--no-drain", help="Print leftover server output on shutdown"),
    log_file: bool = typer.Option(False, "--log-file", help="Also log to ~/.stdiorpc/logs/stdiorpc.log"),
    version: bool = typer.Option(None, "--version", callback=_version_callback, is_eager=True),
) -> None:
    """stdiorpc - talk JSON-RPC to a server over its stdin/stdout."""
    CliState.config_path = config
    CliState.drain = drain
    CliState.config = None
    configure_console_logging("DEBUG" if verbose else "WARNING")
    try:
        cfg = cli_config()
    except StdioRpcError as exc:
        console.print(f"[red]{format_error(exc)}[/red]")
        raise typer.Exit(1) from exc
    if log_file:
        ensure_rotating_log_file("stdiorpc", level=cfg.log_level)


@app.command("call")
def call_command(
    method: str = typer.Argument(..., help="JSON-RPC method, e.g. tools/call"),
    server: str = typer.Option(None, "--server", "-s", help="Server name from config"),
    params: str = typer.Option(None, "--params", "-p", help="Params as a JSON object"),
    timeout: float = typer.Option(None, "--timeout", "-t", help="Per-call timeout in seconds"),
) -> None:
    """Send one raw request and print the result."""
    payload = parse_json_object(params, "--params")
    with cli_session(console, server) as session:
        result = session.call(method, payload or None, timeout=timeout)
    console.print_json(data=result)


@app.command("servers")
def servers_command() -> None:
    """List configured servers (env values are never shown)."""
    cfg = cli_config()
    if not cfg.servers:
        console.print(f"No servers configured in {CliState.config_path or get_config_path()}")
        return
    table = Table(title="Servers")
    table.add_column("Name", style="cyan")
    table.add_column("Command")
    table.add_column("Env keys")
    table.add_column("Timeout")
    table.add_column("Description")
    for name, server in cfg.servers.items():
        marker = " [green](default)[/green]" if name == cfg.default_server else ""
        table.add_row(
            f"{name}{marker}",
            " ".join([server.command, *server.args]),
            ", ".join(sorted(server.env)) or "-",
            "-" if server.request_timeout is None else f"{server.request_timeout}s",
            escape(server.description) or "-",
        )
    console.print(table)


register_tools_commands(app, console)
