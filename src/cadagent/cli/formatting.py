"""Rich formatting helpers for the cadagent CLI.

Provides functions that format SDK data structures for terminal display.
Rich auto-detects TTY and degrades gracefully when piped (no ANSI codes).
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cadagent.stream.callbacks import TurnCallbacks

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cadagent.checkpoints.models import CheckpointInfo, UndoResult
    from cadagent.models import ToolCallEvent, ToolResultEvent
    from cadagent.toolkit.models import ToolDefinition

_RESULT_PREVIEW_LENGTH = 120


def get_console() -> Console:
    """Create a Rich Console that auto-detects TTY for graceful pipe degradation."""
    return Console(stderr=False)


def console_callbacks(console: Console) -> TurnCallbacks:
    """Turn callbacks that stream the reply to ``console``."""
    return TurnCallbacks(
        on_token=lambda token: console.print(token, end="", markup=False, highlight=False),
        on_end=lambda: console.print(),
        on_error=lambda message: format_error(message, console),
        on_tool_call_start=lambda call: format_tool_call(call, console),
        on_tool_call_result=lambda result: format_tool_result(result, console),
    )


def format_tool_call(call: ToolCallEvent, console: Console) -> None:
    """Display a tool call as a dim status line."""
    args = json.dumps(call.input, default=str)
    if len(args) > _RESULT_PREVIEW_LENGTH:
        args = args[:_RESULT_PREVIEW_LENGTH] + "..."
    console.print(f"\n[dim]> {escape(call.name)} {escape(args)}[/dim]", highlight=False)


def format_tool_result(result: ToolResultEvent, console: Console) -> None:
    """Display the first line of a tool result."""
    lines = result.content.splitlines()
    preview = lines[0] if lines else ""
    if len(preview) > _RESULT_PREVIEW_LENGTH:
        preview = preview[:_RESULT_PREVIEW_LENGTH] + "..."
    if result.image_data:
        preview += " [image]"
    if result.is_error:
        console.print(f"[dim red]< {escape(preview)}[/dim red]", highlight=False)
    else:
        console.print(f"[dim]< {escape(preview)}[/dim]", highlight=False)


def format_tools(tools: Sequence[ToolDefinition], console: Console) -> None:
    """Display capabilities as a name/description table."""
    if not tools:
        console.print("[dim]No tools.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Name", style="cyan")
    table.add_column("Parameters", style="dim")
    table.add_column("Description")

    for tool in tools:
        params = ", ".join(tool.parameters.get("properties", {}).keys())
        table.add_row(tool.name, escape(params), escape(tool.description))

    console.print(table)


def format_checkpoints(checkpoints: Sequence[CheckpointInfo], console: Console) -> None:
    """Display undoable checkpoints, newest last."""
    if not checkpoints:
        console.print("[dim]No checkpoints.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("ID", style="yellow")
    table.add_column("Time", style="dim")
    table.add_column("Files", justify="right", style="green")
    table.add_column("Description")

    for info in checkpoints:
        table.add_row(
            info.id,
            info.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S"),
            str(len(info.files)),
            escape(info.description),
        )

    console.print(table)


def format_undo(checkpoint_id: str, result: UndoResult, console: Console) -> None:
    """Display the outcome of an undo."""
    console.print(
        f"Undid [yellow]{checkpoint_id}[/yellow]: "
        f"[green]{len(result.restored_paths)}[/green] file(s) restored",
        highlight=False,
    )
    for path in result.restored_paths:
        console.print(f"  [dim]{escape(path)}[/dim]", highlight=False)
    for path, error in result.errors.items():
        console.print(f"  [red]failed[/red] {escape(path)}: {escape(error)}", highlight=False)


def format_error(message: str, console: Console) -> None:
    """Display an error message."""
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)
