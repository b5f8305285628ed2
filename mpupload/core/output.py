"""Terminal output: result tables, JSON, status lines and the progress display.

Results go to stdout. Errors, warnings and the live progress display go to
stderr so that ``-o json`` output can be piped.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from enum import Enum
from typing import Any

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TransferSpeedColumn,
)
from rich.table import Table

console = Console()
err_console = Console(stderr=True)

_SIZE_UNITS = ("KiB", "MiB", "GiB", "TiB")


class OutputFormat(Enum):
    JSON = "json"
    TABLE = "table"

    @classmethod
    def from_string(cls, value: str) -> OutputFormat:
        return cls(value.lower())


def format_size(num_bytes: int) -> str:
    """Format a byte count with binary units, e.g. ``5.0 MiB``."""
    if num_bytes < 1024:
        return f"{num_bytes} B"
    size = num_bytes / 1024
    unit = _SIZE_UNITS[0]
    for unit in _SIZE_UNITS:
        if size < 1024 or unit == _SIZE_UNITS[-1]:
            break
        size /= 1024
    return f"{size:.1f} {unit}"


def _label(key: str) -> str:
    return key.replace("_", " ").title()


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return str(value)


def print_table(
    rows: Sequence[dict[str, Any]], columns: Sequence[str], *, title: str | None = None
) -> None:
    """Print one table row per mapping, showing ``columns`` in order."""
    if not rows:
        console.print("[dim]No files[/dim]")
        return

    table = Table(title=title, header_style="bold")
    for column in columns:
        table.add_column(_label(column))
    for row in rows:
        table.add_row(*[_cell(row.get(column)) for column in columns])
    console.print(table)


def print_key_value(data: dict[str, Any], *, title: str | None = None) -> None:
    """Print a mapping as aligned label/value lines; None shows as ``-``."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    if not data:
        return

    width = max(len(_label(key)) for key in data)
    for key, value in data.items():
        if value is None:
            shown = "[dim]-[/dim]"
        elif value is True:
            shown = "[green]Yes[/green]"
        elif value is False:
            shown = "[red]No[/red]"
        else:
            shown = _cell(value)
        console.print(f"  {_label(key):<{width}}  {shown}")


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def print_output(
    data: Any,
    *,
    format: OutputFormat = OutputFormat.TABLE,
    columns: Sequence[str] | None = None,
    title: str | None = None,
    quiet: bool = False,
) -> None:
    """Print a result.

    ``quiet`` wins over ``format`` and prints only each row's ``name``.
    Otherwise JSON is printed as is; for tables, rows need ``columns`` and
    a single mapping without columns is shown as key/value lines.
    """
    if quiet:
        for item in data if isinstance(data, list) else [data]:
            print(item.get("name", "") if isinstance(item, dict) else item)
    elif format == OutputFormat.JSON:
        print_json(data)
    elif columns and isinstance(data, (list, dict)):
        print_table(data if isinstance(data, list) else [data], columns, title=title)
    elif isinstance(data, dict):
        print_key_value(data, title=title)
    else:
        print_json(data)


def print_error(message: str) -> None:
    err_console.print(f"[red]Error:[/red] {message}")


def print_warning(message: str) -> None:
    err_console.print(f"[yellow]Warning:[/yellow] {message}")


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def create_progress() -> Progress:
    """Rich progress display with one row per file.

    Direct transfers advance by bytes sent; multipart rows jump one
    confirmed part at a time.
    """
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        DownloadColumn(binary_units=True),
        TransferSpeedColumn(),
        console=err_console,
    )
