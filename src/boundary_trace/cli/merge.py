"""Merge command: union several descriptor files into one."""

from pathlib import Path
from typing import List

import typer
from rich.markup import escape

from .. import emit
from ..exceptions import BoundaryTraceError
from ..logging_config import setup_logging
from ..merge import load_input, merge_all
from . import app
from ._common import console, fail


@app.command()
def merge(
    inputs: List[Path] = typer.Argument(
        ...,
        help="Descriptor files to merge",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    output: Path = typer.Option(..., "--output", "-o", help="Descriptor file to write", dir_okay=False),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print errors"),
):
    """
    Merge descriptor files from several runs.

    The result holds every member of every input. The output may be one of
    the inputs.

    [bold cyan]Examples:[/bold cyan]

      boundary-trace merge run1.json run2.json -o reachability.json
    """
    setup_logging(verbose=verbose, quiet=quiet)

    try:
        merged = merge_all(load_input(path) for path in inputs)
        written = emit.emit(merged, output)
    except BoundaryTraceError as e:
        fail(e)

    if not quiet:
        console.print(
            f"  Merged [bold]{len(inputs)}[/bold] files into [bold]{len(merged)}[/bold] descriptors "
            f"([bold]{merged.member_count}[/bold] members) at {escape(str(written))}"
        )
