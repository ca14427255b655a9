"""CLI — Inspect a world's GateKeeper files without a running server."""

from __future__ import annotations

import datetime
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from gatekeeper.config import Settings
from gatekeeper.security.audit import read_denied_trail
from gatekeeper.storage.tenant import resolve_tenant

app = typer.Typer(help="Inspect the GateKeeper files of a world save.")
console = Console()


@app.command("paths")
def paths(
    world: Path = typer.Argument(help="World save folder or save file."),
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config.yaml.")
    ] = None,
) -> None:
    """Show where GateKeeper keeps this world's files."""
    settings = Settings.load(config_file=config)
    ctx = resolve_tenant(str(world), world, settings.storage)

    table = Table(title=f"GateKeeper files for {world}")
    table.add_column("File", style="cyan")
    table.add_column("Path")
    table.add_column("Exists")

    for label, path in (
        ("allow-list", ctx.allowlist_path),
        ("name cache", ctx.name_cache_path),
        ("denied trail", ctx.denied_log_path),
        ("admin trail", ctx.admin_log_path),
        ("known players", ctx.known_players_path),
    ):
        table.add_row(label, str(path), "yes" if path.exists() else "[dim]no[/dim]")
    console.print(table)


@app.command("denied")
def denied(
    world: Path = typer.Argument(help="World save folder or save file."),
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Show the last N attempts."),
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config.yaml.")
    ] = None,
) -> None:
    """List denied connection attempts from the on-disk trail."""
    settings = Settings.load(config_file=config)
    ctx = resolve_tenant(str(world), world, settings.storage)
    attempts = read_denied_trail(ctx.denied_log_path, limit=limit)
    if not attempts:
        console.print("No denied attempts recorded.")
        return

    table = Table(title="Denied attempts")
    table.add_column("When", style="cyan")
    table.add_column("Auth")
    table.add_column("Name")
    table.add_column("Address")

    for a in attempts:
        when = datetime.datetime.fromtimestamp(a.timestamp).strftime("%Y-%m-%d %H:%M:%S")
        table.add_row(when, str(a.identity), a.name or "-", a.address or "-")
    console.print(table)
