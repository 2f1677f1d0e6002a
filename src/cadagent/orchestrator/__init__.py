"""Conversation orchestration: one agent turn from prompt to callbacks."""

from cadagent.orchestrator.conversation import Conversation

__all__ = ["Conversation"]
