"""Console output formatting for pybun."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table


class OutputFormatter:
    """Formats status messages and data for the terminal.

    Status messages go to stderr so that stdout stays clean for data
    (listings, JSON, downloaded file contents).
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Console | None = None,
        err_console: Console | None = None,
    ):
        """Initialize output formatter.

        Args:
            json_output: Print data as JSON instead of tables
            quiet: Suppress informational messages (errors are still shown)
            console: Console for data output (defaults to stdout)
            err_console: Console for status messages (defaults to stderr)
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    def info(self, message: str) -> None:
        """Print an informational message."""
        if not self.quiet:
            self.err_console.print(
                message, markup=False, highlight=False, soft_wrap=True
            )

    def success(self, message: str) -> None:
        """Print a success message."""
        if not self.quiet:
            self.err_console.print(
                f"[green]{escape(message)}[/green]", soft_wrap=True
            )

    def warning(self, message: str) -> None:
        """Print a warning message."""
        if not self.quiet:
            self.err_console.print(
                f"[yellow]{escape(message)}[/yellow]", soft_wrap=True
            )

    def error(self, message: str) -> None:
        """Print an error message. Errors are shown even in quiet mode."""
        self.err_console.print(f"[red]{escape(message)}[/red]", soft_wrap=True)

    def output_json(self, data: Any) -> None:
        """Write data as JSON to stdout."""
        self.console.print_json(json.dumps(data, default=str))

    def output_table(
        self, columns: list[str], rows: list[list[str]], title: str | None = None
    ) -> None:
        """Write rows as a table to stdout."""
        table = Table(title=title, show_edge=False, box=None, pad_edge=False)
        for column in columns:
            table.add_column(column, no_wrap=True)
        for row in rows:
            table.add_row(*row)
        self.console.print(table)
