"""Stream translation: runtime events in, normalized turn callbacks out."""

from cadagent.stream.callbacks import TurnCallbacks, TurnRecorder, logging_callbacks
from cadagent.stream.translator import (
    IMAGE_ONLY_PLACEHOLDER,
    RUNTIME_UNAVAILABLE,
    StreamTranslator,
    build_prompt,
    has_images,
    latest_user_message,
    normalize_tool_result,
)

__all__ = [
    "StreamTranslator",
    "TurnCallbacks",
    "TurnRecorder",
    "logging_callbacks",
    "build_prompt",
    "has_images",
    "latest_user_message",
    "normalize_tool_result",
    "RUNTIME_UNAVAILABLE",
    "IMAGE_ONLY_PLACEHOLDER",
]
