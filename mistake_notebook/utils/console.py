"""
Rich console utilities for dual-mode CLI output.

Provides readable terminal output for humans and structured JSON for agents
and scripts. All output functions adapt to the global output_mode setting.

This module provides:
- OutputMode: Class to manage output format (text/json)
- Context manager: spinner()
- Output functions: success(), error(), warning(), info()
- Display functions: print_migration_status(), print_question_page()

Human Mode (--format text):
    - Rich spinners and colored tables
    - ANSI colors and Unicode symbols

Agent Mode (--format json):
    - One JSON document on stdout per command
    - No ANSI codes or spinners

Examples:
    >>> from mistake_notebook.utils.console import output_mode, spinner, success
    >>> output_mode.format = "text"
    >>> with spinner("Applying migrations..."):
    ...     applied = apply_migrations_to_latest(conn)
    >>> success("Database is up to date")

    >>> output_mode.format = "json"
    >>> success("Database is up to date")  # Buffers to JSON
    >>> output_mode.flush_json()            # Outputs JSON to stdout
"""

from __future__ import annotations

import json
import sys
from contextlib import contextmanager
from typing import Any

from rich import box
from rich.console import Console
from rich.table import Table


class OutputMode:
    """
    Output mode configuration for dual-mode CLI.

    Attributes:
        format: Output format - "text" (human) or "json" (agent)
        quiet: If True, suppress informational output
        _json_buffer: Internal buffer for JSON output in agent mode

    Examples:
        >>> mode = OutputMode()
        >>> mode.is_human()
        True
        >>> mode.format = "json"
        >>> mode.is_agent()
        True
    """

    def __init__(self, format_type: str = "text", quiet: bool = False):
        """
        Initialize output mode.

        Raises:
            ValueError: If format_type is not "text" or "json"
        """
        if format_type not in ["text", "json"]:
            raise ValueError(f"Invalid format: {format_type}. Must be 'text' or 'json'")

        self.format = format_type
        self.quiet = quiet
        self._json_buffer: dict[str, Any] = {}

    def is_human(self) -> bool:
        return self.format == "text"

    def is_agent(self) -> bool:
        return self.format == "json"

    def add_json(self, key: str, value: Any) -> None:
        """
        Add key-value pair to JSON buffer.

        Used in agent mode to accumulate structured data before final
        output via flush_json().
        """
        self._json_buffer[key] = value

    def flush_json(self) -> None:
        """
        Output buffered JSON to stdout and clear buffer.

        Only outputs in agent mode. In human mode, this is a no-op.
        """
        if self.is_agent() and self._json_buffer:
            json.dump(self._json_buffer, sys.stdout, indent=2, ensure_ascii=False)
            sys.stdout.write("\n")
            sys.stdout.flush()
            self._json_buffer.clear()


# Global output mode instance (set by CLI flags)
output_mode = OutputMode()

# Global Rich console instances for human mode
console = Console()  # stdout
console_err = Console(stderr=True)  # stderr


@contextmanager
def spinner(message: str):
    """
    Context manager for showing a spinner during operations.

    Displays a Rich spinner with message in human mode. Silent in agent mode.
    """
    if output_mode.is_human():
        with console.status(f"[bold blue]{message}", spinner="dots") as status:
            yield status
    else:
        yield None


def success(message: str) -> None:
    """
    Print a success message.

    Human mode: Green checkmark with message
    Agent mode: Buffer {"status": "success", "message": ...}
    """
    if output_mode.is_human():
        console.print(f"[green]✓[/green] {message}")
    elif output_mode.is_agent():
        output_mode.add_json("status", "success")
        output_mode.add_json("message", message)


def error(message: str) -> None:
    """
    Print an error message.

    Human mode: Red X with message to stderr
    Agent mode: Buffer {"status": "error", "error": ...}
    """
    if output_mode.is_human():
        console_err.print(f"[red]✗[/red] {message}", style="red")
    elif output_mode.is_agent():
        output_mode.add_json("status", "error")
        output_mode.add_json("error", message)


def warning(message: str) -> None:
    if output_mode.is_human():
        console.print(f"[yellow]⚠[/yellow] {message}", style="yellow")
    elif output_mode.is_agent():
        output_mode.add_json("warning", message)


def info(message: str) -> None:
    """Print an info message (human mode only, silent when quiet)."""
    if output_mode.is_human() and not output_mode.quiet:
        console.print(f"[blue]ℹ[/blue] {message}")


def print_migration_status(status: dict[str, Any]) -> None:
    """
    Print the migration ledger compared with the catalog.

    Human mode: Table of every known version with its state
    Agent mode: Buffer the status dict under "migrations"

    Args:
        status: MigrationStatus.to_dict() output
    """
    if output_mode.is_agent():
        output_mode.add_json("migrations", status)
        return

    table = Table(
        title=f"Schema migrations ({status['dbPath']})", box=box.ROUNDED
    )
    table.add_column("Version", justify="right", style="cyan", no_wrap=True)
    table.add_column("Name", style="magenta")
    table.add_column("Status", justify="center")
    table.add_column("Applied at", style="dim")

    for applied in status["applied"]:
        table.add_row(
            str(applied["version"]),
            applied["name"],
            "[green]applied[/green]",
            applied["appliedAt"],
        )
    for pending in status["pending"]:
        table.add_row(
            str(pending["version"]),
            pending["name"],
            "[yellow]pending[/yellow]",
            "",
        )

    console.print(table)
    console.print(
        f"Current version: [bold]{status['current']}[/bold]  "
        f"Latest version: [bold]{status['latest']}[/bold]  "
        f"Pending: [bold]{status['pendingCount']}[/bold]"
    )


def _truncate(text: str, width: int = 48) -> str:
    text = " ".join(text.split())
    return text if len(text) <= width else text[: width - 1] + "…"


def print_question_page(page: dict[str, Any], trashed: bool = False) -> None:
    """
    Print one page of questions.

    Human mode: Table with id, subject, difficulty, tags and a content excerpt
    Agent mode: Buffer the page dict under "page"

    Args:
        page: QuestionPage.to_dict() output
        trashed: Show the deletion time instead of the creation time
    """
    if output_mode.is_agent():
        output_mode.add_json("page", page)
        return

    title = "Trash" if trashed else "Questions"
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Subject", style="magenta")
    table.add_column("Diff.", justify="center")
    table.add_column("Knowledge points")
    table.add_column("Content")
    table.add_column("Deleted at" if trashed else "Created at", style="dim")

    for item in page["items"]:
        table.add_row(
            item["id"][:8],
            item["subject"],
            str(item["difficulty"]),
            ", ".join(item["knowledgePoints"]),
            _truncate(item["content"]),
            item.get("deletedAt", "") if trashed else item["createdAt"],
        )

    console.print(table)

    page_count = max(1, -(-page["total"] // page["pageSize"]))
    console.print(
        f"Page {page['page']}/{page_count}, {page['total']} question(s) in total"
    )
