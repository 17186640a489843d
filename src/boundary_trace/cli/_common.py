"""Shared CLI helpers."""

from dataclasses import replace
from pathlib import Path
from typing import NoReturn, Optional, Sequence

import typer
from rich.console import Console
from rich.markup import escape

from ..collector import CollectionResult
from ..config import TraceConfig, load_config
from ..exceptions import BoundaryTraceError

console = Console()


def resolve_config(
    config: Optional[Path] = None,
    verbose: bool = False,
    quiet: bool = False,
    boundary: Optional[Sequence[str]] = None,
    exclude: Optional[Sequence[str]] = None,
    python: Optional[str] = None,
) -> TraceConfig:
    """Build configuration from CLI options.

    ``--boundary`` replaces the configured boundary patterns; ``--exclude``
    adds to the configured exclusions.
    """
    overrides = {}
    if boundary:
        overrides["boundary"] = list(boundary)
    if python is not None:
        overrides["python"] = python
    settings = load_config(config_file=config, verbose=verbose, quiet=quiet, **overrides)
    if exclude:
        settings = replace(settings, exclude=[*settings.exclude, *exclude])
    return settings


def fail(error: BoundaryTraceError) -> NoReturn:
    """Report ``error`` with the stage it came from and exit with that stage's code."""
    console.print(f"[red]{error.stage.value} failed:[/red] {escape(str(error))}")
    if error.cause is not None:
        console.print(f"  [dim]caused by {escape(repr(error.cause))}[/dim]")
    raise typer.Exit(error.stage.exit_code)


def report_collection(result: CollectionResult, quiet: bool = False) -> None:
    """Print the outcome of a collector run."""
    if result.incomplete:
        console.print(
            "[yellow]No boundary accesses were observed.[/yellow] "
            "The descriptor file may be incomplete; exercise more code paths."
        )
    if quiet:
        return

    descriptors = result.descriptors
    console.print(
        f"  Captured [green]{result.event_count}[/green] events"
        + (" [dim](stopped early)[/dim]" if result.stopped_early else "")
    )
    console.print(
        f"  Wrote [bold]{len(descriptors)}[/bold] descriptors "
        f"([bold]{descriptors.member_count}[/bold] members) to {escape(str(result.output))}"
    )
    new_members = sum(len(members) for members in result.added.values())
    if result.added:
        console.print(
            f"  [cyan]+{len(result.added)}[/cyan] symbols touched with new coverage, "
            f"[cyan]+{new_members}[/cyan] new members"
        )
    if result.exit_code:
        console.print(f"  [dim]Target exited with status {result.exit_code}[/dim]")
