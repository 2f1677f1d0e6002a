"""cadagent probe -- check that the agent runtime is reachable."""

from __future__ import annotations

import asyncio

import click

from cadagent.cli.formatting import format_error, get_console
from cadagent.orchestrator.conversation import Conversation


@click.command()
@click.pass_context
def probe(ctx: click.Context) -> None:
    """Send a one-turn probe to the agent runtime.

    Exits with status 1 when the runtime cannot be reached.
    """
    from cadagent.cli import _make_runtime

    console = get_console()
    try:
        runtime = _make_runtime(ctx)
        available = asyncio.run(_probe(Conversation(runtime)))
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None

    if available:
        console.print("Agent runtime: [green]available[/green]")
    else:
        console.print("Agent runtime: [red]unavailable[/red]")
        raise SystemExit(1)


async def _probe(conversation: Conversation) -> bool:
    try:
        return await conversation.is_available()
    finally:
        aclose = getattr(conversation.runtime, "aclose", None)
        if aclose is not None:
            await aclose()
