"""CLI — Run the ``whitelist`` command family against a world offline.

Nobody is online when this runs, so ``online`` is always empty, ``recent``
only covers this invocation, and removals kick nobody.  Name lookups fall
back to the world's name cache.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from gatekeeper.commands import WhitelistCommand
from gatekeeper.config import Settings
from gatekeeper.exceptions import GateKeeperError
from gatekeeper.gate import GateKeeper

console = Console()


def whitelist(
    world: Path = typer.Argument(help="World save folder or save file."),
    args: Annotated[
        list[str] | None, typer.Argument(help="Subcommand and its arguments, e.g. 'add 123'.")
    ] = None,
    tenant_id: Annotated[
        str | None, typer.Option("--tenant-id", help="World id (defaults to the path).")
    ] = None,
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config.yaml.")
    ] = None,
) -> None:
    """Run a whitelist subcommand (status, list, add, remove, ...) on WORLD."""
    settings = Settings.load(config_file=config)
    gate = GateKeeper(settings=settings)
    try:
        gate.switch_tenant(tenant_id or str(world), world)
    except GateKeeperError as exc:
        console.print(f"ERROR: {exc.message}", style="red", markup=False, highlight=False)
        raise typer.Exit(1) from exc

    result = WhitelistCommand(gate).run(args or [], caller="cli")
    for line in result.lines:
        style = "red" if line.startswith("ERROR") else None
        console.print(line, style=style, markup=False, highlight=False)
    if not result.ok:
        raise typer.Exit(1)
