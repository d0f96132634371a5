"""
This file is the entry point for the 'stagedeploy' command-line tool.
Run 'stagedeploy --help' in your shell to use the CLI.
"""
import asyncio
import json
from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table

from common.app_setup import print_and_log, print_error, setup_logging
from connectors.connections_manager import close_sessions, get_host

from .deployer import Orchestrator
from .exceptions import InvalidConfiguration, StageDeployError
from .models import DependentGroup, load_tree
from .tree import report

app = typer.Typer(add_completion=False, help="Deploy trees of dependent units.")

_STYLES = {"succeeded": "green", "failed": "bold red", "skipped": "yellow", "pending": "dim"}


def _load(config: Path) -> DependentGroup:
    try:
        return load_tree(config)
    except InvalidConfiguration as e:
        print_error(f"Invalid configuration {config}: {e}")
        raise typer.Exit(2)


def _report_table(tree: DependentGroup) -> Table:
    table = Table(title="Deployment report")
    table.add_column("Unit", overflow="fold")
    table.add_column("Status", no_wrap=True)
    table.add_column("Instance")
    table.add_column("Cause", overflow="fold")
    for row in report(tree):
        style = _STYLES.get(row.status, "")
        table.add_row(row.path, f"[{style}]{row.status}[/{style}]" if style else row.status,
                      row.instance_id or "", escape(row.cause or ""))
    return table


async def _deploy(tree: DependentGroup, host_url: str | None, user: str, password: str) -> BaseException | None:
    try:
        if host_url:
            host = await get_host("http", host_url, user, password)
        else:
            host = await get_host("local")
        orchestrator = Orchestrator(host)
        try:
            await orchestrator.run(tree)
        except StageDeployError as e:
            # let the other branches settle before reporting
            await orchestrator.wait_idle()
            return e
        return None
    finally:
        await close_sessions()


@app.command()
def run(
    config: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML or JSON deployment tree"),
    host_url: str = typer.Option(None, "--host-url", help="Deploy on a remote host instead of in-process"),
    user: str = typer.Option("", help="User for the remote host"),
    password: str = typer.Option("", help="Password for the remote host"),
    logfile: str = typer.Option(None, help="Log file (default ~/.stagedeploy/log.txt)"),
):
    """Deploy every unit of CONFIG, dependents after their parents."""
    setup_logging(app_name="stagedeploy", logfile=logfile)
    tree = _load(config)
    try:
        failure = asyncio.run(_deploy(tree, host_url, user, password))
    except ConnectionError as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_and_log(_report_table(tree))
    if failure is not None:
        print_error(f"Deployment failed: {failure}")
        raise typer.Exit(1)
    print_and_log("[green]All units deployed[/green]")


@app.command()
def show(config: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML or JSON deployment tree")):
    """Validate CONFIG and print it in normalized JSON form."""
    tree = _load(config)
    typer.echo(json.dumps(tree.to_dict(), indent=2))


if __name__ == "__main__":
    app()
