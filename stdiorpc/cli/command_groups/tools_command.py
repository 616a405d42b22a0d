"""Tools command group: tools/list and tools/call against a configured server."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from stdiorpc import __version__
from stdiorpc.cli.shared.session_utils import cli_config, cli_session, format_error, parse_json_object
from stdiorpc.client.session import ClientSession
from stdiorpc.client.tools import ToolClient
from stdiorpc.utils.exceptions import ToolCallError


def _tool_client(session: ClientSession, skip_init: bool) -> ToolClient:
    client = ToolClient(session)
    if not skip_init:
        cfg = cli_config()
        client.initialize(client_name=cfg.client_name, client_version=__version__)
    return client


def register_tools_commands(app: typer.Typer, console: Console) -> None:
    tools_app = typer.Typer(help="Tool calls on MCP-style servers (tools/list, tools/call)")
    app.add_typer(tools_app, name="tools")

    @tools_app.command("list")
    def tools_list(
        server: str = typer.Argument(None, help="Server name from config (defaults to defaultServer)"),
        skip_init: bool = typer.Option(False, "--skip-init", help="Do not send initialize first"),
        timeout: float = typer.Option(None, "--timeout", "-t", help="Per-call timeout in seconds"),
    ) -> None:
        """List tools advertised by the server."""
        with cli_session(console, server) as session:
            tools = _tool_client(session, skip_init).list_tools(timeout=timeout)
        if not tools:
            console.print("[dim]No tools advertised.[/dim]")
            return
        table = Table(title=f"Tools ({session.name})")
        table.add_column("Name", style="cyan")
        table.add_column("Description")
        for tool in tools:
            table.add_row(tool.name, tool.description)
        console.print(table)

    @tools_app.command("call")
    def tools_call(
        name: str = typer.Argument(..., help="Tool name"),
        server: str = typer.Option(None, "--server", "-s", help="Server name from config"),
        args: str = typer.Option(None, "--args", "-a", help="Tool arguments as a JSON object"),
        skip_init: bool = typer.Option(False, "--skip-init", help="Do not send initialize first"),
        timeout: float = typer.Option(None, "--timeout", "-t", help="Per-call timeout in seconds"),
    ) -> None:
        """Call one tool and print its result."""
        arguments = parse_json_object(args, "--args")
        with cli_session(console, server) as session:
            result = _tool_client(session, skip_init).call_tool(name, arguments, timeout=timeout)
        if result.is_error:
            console.print(f"[red]{format_error(ToolCallError(name, result.text() or 'tool reported an error'))}[/red]")
            raise typer.Exit(1)
        if result.structured is not None:
            console.print_json(data=result.structured)
        elif result.text():
            console.print(result.text(), markup=False, highlight=False)
        else:
            console.print_json(data=result.raw)
