"""Replay command: rebuild descriptors from a saved trace log."""

from pathlib import Path
from typing import List, Optional

import typer

from ..collector import Collector
from ..exceptions import BoundaryTraceError
from ..logging_config import setup_logging
from ..recording import StreamEventSource
from . import app
from ._common import fail, report_collection, resolve_config


@app.command()
def replay(
    trace_log: Path = typer.Argument(
        ...,
        help="Trace log saved by `record --trace-log`",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    output: Path = typer.Option(..., "--output", "-o", help="Descriptor file to write", dir_okay=False),
    existing: Optional[Path] = typer.Option(
        None,
        "--existing",
        "-e",
        help="Descriptor file to merge with (missing file = start fresh)",
        dir_okay=False,
    ),
    exclude: Optional[List[str]] = typer.Option(
        None, "--exclude", "-x", help="Symbol pattern to leave out (repeatable)"
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file (TOML)",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every replayed event"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print errors"),
):
    """
    Normalize a saved trace log into a descriptor file.

    Useful to re-apply different filters without running the program again.

    [bold cyan]Examples:[/bold cyan]

      boundary-trace replay run.trace -o reachability.json -x "pkg.tests"
    """
    logger = setup_logging(verbose=verbose, quiet=quiet)

    try:
        settings = resolve_config(config=config, verbose=verbose, quiet=quiet, exclude=exclude)
        result = Collector(settings).run(StreamEventSource(trace_log), output, existing=existing)
        report_collection(result, quiet=quiet)

    except typer.Exit:
        raise
    except BoundaryTraceError as e:
        logger.debug(f"{e.__class__.__name__}: {e.to_json()}")
        fail(e)
