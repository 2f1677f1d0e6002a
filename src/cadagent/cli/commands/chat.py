"""cadagent chat -- talk to the modeling agent."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

import click

from cadagent.cli.formatting import (
    console_callbacks,
    format_checkpoints,
    format_error,
    format_tools,
    format_undo,
    get_console,
)
from cadagent.compiler import OpenScadCompiler
from cadagent.config import ConversationConfig
from cadagent.exceptions import CheckpointNotFoundError
from cadagent.orchestrator.conversation import Conversation

if TYPE_CHECKING:
    from rich.console import Console

HELP_TEXT = (
    "Commands: /checkpoints, /undo [ID], /tools, /reset, /quit"
)


@click.command()
@click.argument("prompt", required=False)
@click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Project directory the agent may read and edit.",
)
@click.option("--model", default=None, help="Model override for this session.")
@click.option("--max-turns", type=int, default=None, help="Maximum agent turns per message.")
@click.option("--system-prompt", default=None, help="Replace the default CAD system prompt.")
@click.option(
    "--openscad",
    default=None,
    help="OpenSCAD binary; enables the compile_openscad capability.",
)
@click.pass_context
def chat(
    ctx: click.Context,
    prompt: str | None,
    project: str | None,
    model: str | None,
    max_turns: int | None,
    system_prompt: str | None,
    openscad: str | None,
) -> None:
    """Send PROMPT to the agent, or start an interactive session.

    File edits made while answering one message form one checkpoint,
    which /undo reverts in the interactive session.
    """
    from cadagent.cli import _make_runtime

    console = get_console()
    try:
        runtime = _make_runtime(ctx, model=model)
        config = ConversationConfig.from_env(max_turns=max_turns, system_prompt=system_prompt)
        conversation = Conversation(runtime, config=config)
        conversation.register_builtin_tools(
            compiler=OpenScadCompiler(openscad) if openscad else None,
        )
        project_dir = str(Path(project).resolve()) if project else None
        ok = asyncio.run(_session(conversation, prompt, project_dir, console))
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None

    if not ok:
        raise SystemExit(1)


async def _session(
    conversation: Conversation,
    prompt: str | None,
    project_dir: str | None,
    console: Console,
) -> bool:
    """Run one prompt, or the interactive loop. Returns False if a one-shot turn failed."""
    try:
        if prompt is not None:
            reply = await conversation.ask(prompt, console_callbacks(console), project_dir=project_dir)
            return reply is not None

        console.print(f"[dim]{HELP_TEXT}[/dim]")
        while True:
            try:
                line = click.prompt("you", prompt_suffix="> ", default="", show_default=False)
            except (EOFError, click.Abort):
                console.print()
                return True
            line = line.strip()
            if not line:
                continue
            if line.startswith("/"):
                if not _run_command(conversation, line, project_dir, console):
                    return True
                continue
            await conversation.ask(line, console_callbacks(console), project_dir=project_dir)
    finally:
        aclose = getattr(conversation.runtime, "aclose", None)
        if aclose is not None:
            await aclose()


def _run_command(
    conversation: Conversation,
    line: str,
    project_dir: str | None,
    console: Console,
) -> bool:
    """Handle a slash command. Returns False to end the session."""
    command, _, argument = line.partition(" ")
    argument = argument.strip()

    if command in ("/quit", "/exit"):
        return False
    if command == "/tools":
        bundle = conversation.registry.build_bundle()
        format_tools(bundle.tools if bundle is not None else (), console)
    elif command == "/checkpoints":
        format_checkpoints(conversation.list_checkpoints(project_dir), console)
    elif command == "/undo":
        checkpoints = conversation.list_checkpoints(project_dir)
        checkpoint_id = argument or (checkpoints[-1].id if checkpoints else "")
        if not checkpoint_id:
            console.print("[dim]No checkpoints.[/dim]")
        else:
            try:
                conversation.journal.require(checkpoint_id)
            except CheckpointNotFoundError as exc:
                format_error(str(exc), console)
            else:
                format_undo(checkpoint_id, conversation.undo_checkpoint(checkpoint_id), console)
    elif command == "/reset":
        conversation.reset()
        console.print("[dim]History cleared.[/dim]")
    else:
        format_error(f"Unknown command: {command}. {HELP_TEXT}", console)
    return True
