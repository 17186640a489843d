"""Show command: summarize a descriptor file."""

from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table

from .. import emit
from ..exceptions import BoundaryTraceError
from ..models import DescriptorSet
from . import app
from ._common import console, fail


@app.command()
def show(
    path: Path = typer.Argument(
        ...,
        help="Descriptor file",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Print the canonical file text instead of a table"
    ),
):
    """
    Show the symbols and members recorded in a descriptor file.
    """
    try:
        descriptors = emit.load(path)
    except BoundaryTraceError as e:
        fail(e)

    if json_output:
        typer.echo(emit.render(descriptors), nl=False)
        return

    _output_rich(descriptors, path)


def _output_rich(descriptors: DescriptorSet, path: Path) -> None:
    table = Table(title=escape(str(path)), show_lines=False, pad_edge=True)
    table.add_column("Symbol", style="cyan")
    table.add_column("Members", justify="right")
    table.add_column("Detail", style="dim")

    for descriptor in descriptors:
        detail = ", ".join(escape(str(m)) for m in descriptor.sorted_members())
        table.add_row(escape(descriptor.symbol_name), str(len(descriptor.members)), detail)

    console.print()
    console.print(table)
    console.print(
        f"  [bold]{len(descriptors)}[/bold] descriptors, "
        f"[bold]{descriptors.member_count}[/bold] members"
    )
    console.print()
