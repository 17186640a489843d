"""CLI entry point: the typer app and its subcommands."""

from typing import Optional

import typer

from .. import __version__
from ._common import console

app = typer.Typer(
    name="boundary-trace",
    help="Boundary Trace - record the native and boundary accesses of a Python program",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


def _show_version(value: bool) -> None:
    if value:
        console.print(f"[bold cyan]Boundary Trace[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        help="Show version and exit",
        callback=_show_version,
        is_eager=True,
    ),
):
    """Collect reachability metadata for ahead-of-time packaging."""


# Import subcommands to register them
from .record import record as _record  # noqa: F401, E402
from .replay import replay as _replay  # noqa: F401, E402
from .merge import merge as _merge  # noqa: F401, E402
from .show import show as _show  # noqa: F401, E402
