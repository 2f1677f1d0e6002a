"""cadagent CLI -- terminal front-end for CAD agent conversations.

This module is NEVER imported from cadagent/__init__.py.
It is only loaded via the ``cadagent`` entry point defined in pyproject.toml.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

try:
    import click
except ImportError:
    raise ImportError(
        "CLI dependencies not installed. Install with: pip install cadagent[cli]"
    ) from None

if TYPE_CHECKING:
    from cadagent.runtime.protocols import AgentRuntime


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option(
    "--model",
    default=None,
    envvar="CADAGENT_MODEL",
    help="Model for the built-in runtime.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, model: str | None) -> None:
    """cadagent: an OpenSCAD modeling agent with undoable file edits."""
    ctx.ensure_object(dict)
    ctx.obj["model"] = model
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


def _make_runtime(ctx: click.Context, model: str | None = None) -> AgentRuntime:
    """Build the agent runtime from Click context.

    Credentials come from the environment (see MessagesRuntime).
    """
    from cadagent.runtime.client import DEFAULT_MODEL, MessagesRuntime

    return MessagesRuntime(model=model or ctx.obj.get("model") or DEFAULT_MODEL)


# Register subcommands after cli group is defined
from cadagent.cli.commands.chat import chat  # noqa: E402
from cadagent.cli.commands.probe import probe  # noqa: E402
from cadagent.cli.commands.tools import tools  # noqa: E402

cli.add_command(chat)
cli.add_command(probe)
cli.add_command(tools)
