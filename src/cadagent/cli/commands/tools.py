"""cadagent tools -- list the built-in capabilities."""

from __future__ import annotations

import click

from cadagent.cli.formatting import format_error, format_tools, get_console
from cadagent.compiler import OpenScadCompiler
from cadagent.orchestrator.conversation import Conversation


@click.command()
@click.option(
    "--openscad",
    default=None,
    help="OpenSCAD binary; includes compile_openscad in the listing.",
)
def tools(openscad: str | None) -> None:
    """List the capabilities a chat session exposes to the agent."""
    console = get_console()
    try:
        conversation = Conversation(None)
        definitions = conversation.register_builtin_tools(
            compiler=OpenScadCompiler(openscad) if openscad else None,
        )
        format_tools(definitions, console)
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None
