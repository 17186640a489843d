"""Record command: run a Python target under the probe and emit its descriptors."""

from pathlib import Path
from typing import List, Optional

import typer
from rich.markup import escape

from ..collector import Collector
from ..exceptions import BoundaryTraceError
from ..logging_config import setup_logging
from ..recording import LaunchSpec, ProcessEventSource
from . import app
from ._common import console, fail, report_collection, resolve_config


@app.command(context_settings={"allow_extra_args": True, "ignore_unknown_options": True})
def record(
    ctx: typer.Context,
    output: Path = typer.Option(
        ...,
        "--output",
        "-o",
        help="Descriptor file to write",
        dir_okay=False,
    ),
    existing: Optional[Path] = typer.Option(
        None,
        "--existing",
        "-e",
        help="Descriptor file to merge with (missing file = start fresh)",
        dir_okay=False,
    ),
    trace_log: Optional[Path] = typer.Option(
        None,
        "--trace-log",
        help="Also save the raw captured events for later replay (written after a successful emit)",
        dir_okay=False,
    ),
    boundary: Optional[List[str]] = typer.Option(
        None,
        "--boundary",
        "-b",
        help="Module pattern whose calls count as boundary crossings (repeatable)",
    ),
    exclude: Optional[List[str]] = typer.Option(
        None,
        "--exclude",
        "-x",
        help="Symbol pattern to leave out (repeatable)",
    ),
    python: Optional[str] = typer.Option(
        None,
        "--python",
        help="Interpreter to run the target with (default: this one)",
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
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every captured event"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print errors"),
):
    """
    Run a Python program and record its boundary-crossing accesses.

    Everything after [bold]--[/bold] is the target, as you would pass it to python.
    Press Ctrl+C to stop recording early; captured events are still written.

    [bold cyan]Examples:[/bold cyan]

      boundary-trace record -o reachability.json -- app.py --port 8080

      boundary-trace record -o out.json -e out.json -b ortools -- -m solver.main
    """
    logger = setup_logging(verbose=verbose, quiet=quiet)

    try:
        settings = resolve_config(
            config=config,
            verbose=verbose,
            quiet=quiet,
            boundary=boundary,
            exclude=exclude,
            python=python,
        )
        spec = LaunchSpec.parse(ctx.args, cwd=Path.cwd())

        if not quiet:
            console.print(f"[bold cyan]Recording[/bold cyan] {escape(str(spec))}")

        source = ProcessEventSource(spec, settings)
        result = Collector(settings).run(source, output, existing=existing, trace_log=trace_log)
        report_collection(result, quiet=quiet)

    except typer.Exit:
        raise
    except BoundaryTraceError as e:
        logger.debug(f"{e.__class__.__name__}: {e.to_json()}")
        fail(e)
    except KeyboardInterrupt:
        console.print("\n[yellow]Recording interrupted[/yellow]")
        raise typer.Exit(130)
    except Exception as e:
        logger.exception("Unexpected error during recording")
        console.print(f"[red]Unexpected error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
