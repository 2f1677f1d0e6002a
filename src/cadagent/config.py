"""Configuration for conversations.

ConversationConfig holds per-conversation settings. Values can be passed
directly or loaded from ``CADAGENT_*`` environment variables.
"""

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_MAX_TURNS = 10
DEFAULT_MAX_CHECKPOINTS = 20
DEFAULT_BUNDLE_NAME = "cadagent-tools"


class ConversationConfig(BaseModel):
    """Per-conversation configuration.

    Attributes:
        system_prompt: Override for the default CAD system prompt.
        max_turns: Maximum agent turns (model round-trips) per message.
        bundle_name: Name under which registered capabilities are exposed.
        max_checkpoints: Per-project checkpoint cap for a journal the
            conversation creates itself.
        description_length: Maximum length of a checkpoint description
            derived from the user prompt.
    """

    system_prompt: Optional[str] = None
    max_turns: int = Field(default=DEFAULT_MAX_TURNS, ge=1)
    bundle_name: str = DEFAULT_BUNDLE_NAME
    max_checkpoints: int = Field(default=DEFAULT_MAX_CHECKPOINTS, ge=1)
    description_length: int = Field(default=80, ge=1)

    @classmethod
    def from_env(cls, **overrides: object) -> ConversationConfig:
        """Build a config from ``CADAGENT_*`` environment variables.

        Explicit keyword overrides win over the environment.
        """
        values: dict[str, object] = {}
        if system_prompt := os.environ.get("CADAGENT_SYSTEM_PROMPT"):
            values["system_prompt"] = system_prompt
        if max_turns := os.environ.get("CADAGENT_MAX_TURNS"):
            values["max_turns"] = max_turns
        if max_checkpoints := os.environ.get("CADAGENT_MAX_CHECKPOINTS"):
            values["max_checkpoints"] = max_checkpoints
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
