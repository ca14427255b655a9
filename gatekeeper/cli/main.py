"""GateKeeper CLI — Entry point.

Usage:
    gatekeeper whitelist <world> status
    gatekeeper whitelist <world> add <auth|name>
    gatekeeper whitelist <world> lockdown on
    gatekeeper world paths <world>
    gatekeeper world denied <world> --limit 50
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError

from gatekeeper.cli.commands import whitelist, world
from gatekeeper.config import LoggingConfig
from gatekeeper.logging import configure_logging

app = typer.Typer(
    name="gatekeeper",
    help="GateKeeper — per-world connection allow-list for multiplayer servers.",
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)

app.add_typer(world.app, name="world")
app.command("whitelist")(whitelist.whitelist)


@app.callback()
def main_callback(
    log_level: Annotated[
        str, typer.Option(help="debug, info, warning, error or critical.")
    ] = "warning",
    log_format: Annotated[str, typer.Option(help="console or json.")] = "console",
    log_file: Annotated[
        Path | None, typer.Option(help="Also append logs to this file.")
    ] = None,
) -> None:
    try:
        config = LoggingConfig(level=log_level, format=log_format, file=log_file)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    configure_logging(config)


if __name__ == "__main__":
    app()
