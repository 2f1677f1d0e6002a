"""Tests for ConversationConfig and the conversation data model."""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from cadagent import (
    ConversationConfig,
    ImageAttachment,
    Message,
    ToolCallEvent,
    ToolExecution,
    ToolResultEvent,
    TurnCallbacks,
    TurnRecorder,
    logging_callbacks,
)


# ===========================================================================
# ConversationConfig
# ===========================================================================


class TestConversationConfig:
    def test_defaults(self):
        config = ConversationConfig()
        assert config.system_prompt is None
        assert config.max_turns == 10
        assert config.bundle_name == "cadagent-tools"
        assert config.max_checkpoints == 20
        assert config.description_length == 80

    def test_validation(self):
        with pytest.raises(ValidationError):
            ConversationConfig(max_turns=0)
        with pytest.raises(ValidationError):
            ConversationConfig(max_checkpoints=0)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("CADAGENT_MAX_TURNS", "4")
        monkeypatch.setenv("CADAGENT_MAX_CHECKPOINTS", "7")
        monkeypatch.setenv("CADAGENT_SYSTEM_PROMPT", "Only OpenSCAD.")
        config = ConversationConfig.from_env()
        assert config.max_turns == 4
        assert config.max_checkpoints == 7
        assert config.system_prompt == "Only OpenSCAD."

    def test_overrides_win_and_none_is_ignored(self, monkeypatch):
        monkeypatch.setenv("CADAGENT_MAX_TURNS", "4")
        monkeypatch.delenv("CADAGENT_SYSTEM_PROMPT", raising=False)
        config = ConversationConfig.from_env(max_turns=2, system_prompt=None)
        assert config.max_turns == 2
        assert config.system_prompt is None

    def test_invalid_env_value(self, monkeypatch):
        monkeypatch.setenv("CADAGENT_MAX_TURNS", "many")
        with pytest.raises(ValidationError):
            ConversationConfig.from_env()


# ===========================================================================
# Data model
# ===========================================================================


class TestModels:
    def test_attachment_block(self):
        image = ImageAttachment(id="a", data="QUJD", media_type="image/jpeg")
        assert image.to_block() == {"type": "image", "data": "QUJD", "mimeType": "image/jpeg"}

    def test_tool_call_from_block(self):
        call = ToolCallEvent.from_block({"type": "tool_use", "id": "t1", "name": "read_file", "input": None})
        assert call == ToolCallEvent(id="t1", name="read_file", input={})
        assert call.to_dict() == {"type": "tool_use", "id": "t1", "name": "read_file", "input": {}}

    def test_tool_result_dict(self):
        assert "imageData" not in ToolResultEvent("t1", "ok").to_dict()
        assert ToolResultEvent("t1", "Image captured", image_data="xyz").to_dict()["imageData"] == "xyz"

    def test_assistant_message_pairs_calls_and_results(self):
        call_a = ToolCallEvent("a", "read_file")
        call_b = ToolCallEvent("b", "write_file")
        executions = [
            ToolExecution(call_a).with_result(ToolResultEvent("a", "text")),
            ToolExecution(call_b),
        ]
        message = Message.assistant("done", executions)
        assert message.tool_calls == (call_a, call_b)
        assert [r.tool_use_id for r in message.tool_results] == ["a"]

    def test_messages_are_frozen(self):
        message = Message.user("hi")
        with pytest.raises(AttributeError):
            message.content = "changed"


# ===========================================================================
# Turn recorder and logging sink
# ===========================================================================


class TestTurnRecorder:
    def test_forwards_to_sink_and_records(self):
        sink_tokens = []
        sink = TurnCallbacks(on_token=sink_tokens.append, on_end=lambda: None, on_error=lambda m: None)
        recorder = TurnRecorder(sink=sink)
        callbacks = recorder.callbacks()
        callbacks.on_token("a")
        callbacks.on_tool_call_start(ToolCallEvent("t1", "read_file"))
        callbacks.on_tool_call_result(ToolResultEvent("t1", "content"))
        callbacks.on_tool_call_result(ToolResultEvent("t1", "late duplicate"))
        callbacks.on_end()

        assert sink_tokens == ["a"]
        assert recorder.text == "a"
        assert recorder.finished is True
        assert recorder.executions[0].result.content == "content"
        assert [r.content for r in recorder.orphan_results] == ["late duplicate"]

    def test_error_marks_finished(self):
        recorder = TurnRecorder()
        recorder.callbacks().on_error("boom")
        assert recorder.error == "boom"
        assert recorder.finished is True
        assert recorder.ended is False

    def test_logging_callbacks(self, caplog):
        callbacks = logging_callbacks()
        with caplog.at_level(logging.INFO, logger="cadagent"):
            callbacks.on_tool_call_start(ToolCallEvent("t1", "write_file"))
            callbacks.on_error("bad")
        assert "Tool call write_file (t1)" in caplog.text
        assert "Turn failed: bad" in caplog.text
