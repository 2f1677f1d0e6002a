"""Prompt text used by the conversation orchestrator."""
