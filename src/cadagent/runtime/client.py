"""Built-in agent runtime over the Anthropic Messages streaming API.

Runs the agent loop locally: each model turn is streamed over httpx
(server-sent events), tool calls are executed through the capability
bundle's ToolExecutor, and their results are sent back until the model
stops asking for tools or the turn budget runs out. Every step is
surfaced as an event record in the shapes StreamTranslator consumes.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import httpx
import tenacity

from cadagent.runtime.errors import (
    AgentAuthError,
    AgentConfigError,
    AgentRateLimitError,
    AgentResponseError,
)
from cadagent.toolkit.executor import ToolExecutor

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from cadagent.runtime.protocols import QueryOptions

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
DEFAULT_MODEL = "claude-sonnet-4-5"
ANTHROPIC_VERSION = "2023-06-01"

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504, 529}
_AUTH_ERROR_STATUS_CODES = {401, 403}


def _is_retryable(exc: BaseException) -> bool:
    """Check if an exception is retryable.

    Retryable: 429, 500, 502, 503, 504, 529 (overloaded), connection errors.
    Not retryable: 401, 403, 400, other client errors.
    """
    if isinstance(exc, AgentAuthError):
        return False
    if isinstance(exc, AgentRateLimitError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _RETRYABLE_STATUS_CODES
    return isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout))


class MessagesRuntime:
    """Async httpx agent runtime for the Anthropic Messages API.

    Implements the AgentRuntime protocol. Opening each model stream is
    retried with exponential backoff for transient errors (429, 5xx);
    authentication errors (401, 403) fail immediately.

    Usage::

        async with MessagesRuntime(api_key="sk-ant-...") as runtime:
            async for event in runtime.query("Make a cube", options):
                print(event["type"])
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 4096,
        timeout: float = 120.0,
        max_retries: int = 3,
    ) -> None:
        """Initialize the runtime.

        Args:
            api_key: API key. Falls back to CADAGENT_API_KEY, then
                ANTHROPIC_API_KEY env vars.
            base_url: API base URL. Falls back to CADAGENT_BASE_URL env var,
                then to https://api.anthropic.com/v1.
            model: Model used for every request.
            max_tokens: Maximum tokens per model turn.
            timeout: Request timeout in seconds.
            max_retries: Maximum number of attempts for retryable errors.

        Raises:
            AgentConfigError: If no API key is provided or found in environment.
        """
        self._api_key = (
            api_key
            or os.environ.get("CADAGENT_API_KEY", "")
            or os.environ.get("ANTHROPIC_API_KEY", "")
        )
        if not self._api_key:
            raise AgentConfigError(
                "No API key provided. Pass api_key= or set CADAGENT_API_KEY "
                "(or ANTHROPIC_API_KEY) environment variable."
            )
        self._base_url = (
            base_url or os.environ.get("CADAGENT_BASE_URL", DEFAULT_BASE_URL)
        ).rstrip("/")
        self._model = model
        self._max_tokens = max_tokens
        self._max_retries = max_retries
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={
                "Content-Type": "application/json",
                "x-api-key": self._api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            },
        )

    @property
    def model(self) -> str:
        return self._model

    async def query(self, prompt: str, options: QueryOptions) -> AsyncIterator[dict[str, Any]]:
        """Run the agent loop for one prompt, yielding event records.

        Raises (while iterating):
            AgentAuthError: On 401/403 (no retry).
            AgentRateLimitError: On 429 after all retries exhausted.
            AgentResponseError: On an error event or malformed stream payload.
            httpx.HTTPStatusError: On other non-retryable HTTP errors.
        """
        bundle = options.capability_bundle
        executor = bundle.executor() if bundle is not None else ToolExecutor(())
        tools = bundle.to_anthropic() if bundle is not None else []
        messages: list[dict[str, Any]] = [{"role": "user", "content": prompt}]
        session_id = uuid.uuid4().hex
        initialized = False

        for turn in range(1, options.max_turns + 1):
            payload: dict[str, Any] = {
                "model": self._model,
                "max_tokens": self._max_tokens,
                "system": options.system_prompt,
                "messages": messages,
                "stream": True,
            }
            if tools:
                payload["tools"] = tools

            accumulator = _MessageAccumulator()
            async with self._open_stream(payload) as response:
                if not initialized:
                    initialized = True
                    yield {
                        "type": "system",
                        "subtype": "init",
                        "session_id": session_id,
                        "model": self._model,
                        "cwd": options.working_directory,
                        "tools": bundle.names() if bundle is not None else [],
                    }
                async for event in _iter_sse(response):
                    accumulator.feed(event)
                    yield {"type": "stream_event", "session_id": session_id, "event": event}

            message = accumulator.message()
            yield {"type": "assistant", "session_id": session_id, "message": message}

            tool_uses = [block for block in message["content"] if block.get("type") == "tool_use"]
            if accumulator.stop_reason != "tool_use" or not tool_uses:
                logger.debug("Agent loop finished after %d turn(s)", turn)
                yield {
                    "type": "result",
                    "subtype": "success",
                    "is_error": False,
                    "num_turns": turn,
                    "session_id": session_id,
                    "result": accumulator.text,
                }
                return

            messages.append({"role": "assistant", "content": message["content"]})
            results: list[dict[str, Any]] = []
            for block in tool_uses:
                result = await executor.execute(block["name"], block.get("input"))
                blocks = result.blocks()
                yield {
                    "type": "tool_result",
                    "session_id": session_id,
                    "tool_use_id": block["id"],
                    "content": blocks,
                    "is_error": not result.success,
                }
                results.append({
                    "type": "tool_result",
                    "tool_use_id": block["id"],
                    "content": _to_api_content(blocks),
                    "is_error": not result.success,
                })
            messages.append({"role": "user", "content": results})

        logger.warning("Agent loop hit max_turns=%d", options.max_turns)
        yield {
            "type": "result",
            "subtype": "error_max_turns",
            "is_error": True,
            "num_turns": options.max_turns,
            "session_id": session_id,
        }

    @asynccontextmanager
    async def _open_stream(self, payload: dict[str, Any]) -> AsyncIterator[httpx.Response]:
        """Open a streaming response with retry and close it on exit.

        Uses tenacity.AsyncRetrying programmatically (not as decorator) so
        that max_retries is configurable per-instance.
        """
        retryer = tenacity.AsyncRetrying(
            retry=tenacity.retry_if_exception(_is_retryable),
            wait=(
                tenacity.wait_exponential(multiplier=1, min=1, max=30)
                + tenacity.wait_random(0, 2)
            ),
            stop=tenacity.stop_after_attempt(self._max_retries),
            before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        response = await retryer(self._send, payload)
        try:
            yield response
        finally:
            await response.aclose()

    async def _send(self, payload: dict[str, Any]) -> httpx.Response:
        """Send a single streaming request (no retry)."""
        request = self._client.build_request(
            "POST",
            f"{self._base_url}/messages",
            json=payload,
        )
        response = await self._client.send(request, stream=True)
        if response.status_code < 400:
            return response

        try:
            await response.aread()
            # Check for auth errors before raise_for_status
            if response.status_code in _AUTH_ERROR_STATUS_CODES:
                raise AgentAuthError(
                    f"Authentication failed: HTTP {response.status_code} - "
                    f"{response.text}"
                )

            if response.status_code == 429:
                retry_after_raw = response.headers.get("Retry-After")
                retry_after: float | None = None
                if retry_after_raw is not None:
                    try:
                        retry_after = float(retry_after_raw)
                    except (ValueError, TypeError):
                        pass
                raise AgentRateLimitError(
                    f"Rate limited: HTTP 429 - {response.text}",
                    retry_after=retry_after,
                )

            response.raise_for_status()
        finally:
            await response.aclose()
        return response

    async def aclose(self) -> None:
        """Close the underlying httpx client."""
        await self._client.aclose()

    async def __aenter__(self) -> MessagesRuntime:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


async def _iter_sse(response: httpx.Response) -> AsyncIterator[dict[str, Any]]:
    """Decode the ``data:`` lines of a server-sent event stream."""
    async for line in response.aiter_lines():
        if not line.startswith("data:"):
            continue
        data = line[len("data:"):].strip()
        if not data or data == "[DONE]":
            continue
        try:
            event = json.loads(data)
        except json.JSONDecodeError as exc:
            raise AgentResponseError(f"Malformed stream payload: {data[:200]}") from exc
        if not isinstance(event, dict):
            raise AgentResponseError(f"Unexpected stream payload: {data[:200]}")

        event_type = event.get("type")
        if event_type == "ping":
            continue
        if event_type == "error":
            error = event.get("error") or {}
            raise AgentResponseError(
                f"{error.get('type', 'error')}: {error.get('message', 'unknown error')}"
            )
        yield event


class _MessageAccumulator:
    """Rebuilds the final assistant message from streamed events."""

    def __init__(self) -> None:
        self.message_id = ""
        self.model = ""
        self.stop_reason: str | None = None
        self._blocks: dict[int, dict[str, Any]] = {}
        self._partial_json: dict[int, list[str]] = {}

    def feed(self, event: dict[str, Any]) -> None:
        event_type = event.get("type")
        if event_type == "message_start":
            message = event.get("message") or {}
            self.message_id = message.get("id", "")
            self.model = message.get("model", "")
        elif event_type == "content_block_start":
            index = event.get("index", len(self._blocks))
            block = dict(event.get("content_block") or {})
            self._blocks[index] = block
            if block.get("type") == "tool_use":
                self._partial_json[index] = []
        elif event_type == "content_block_delta":
            block = self._blocks.get(event.get("index", -1))
            delta = event.get("delta") or {}
            if block is None:
                return
            if delta.get("type") == "text_delta":
                block["text"] = block.get("text", "") + delta.get("text", "")
            elif delta.get("type") == "input_json_delta":
                self._partial_json.setdefault(event["index"], []).append(
                    delta.get("partial_json", "")
                )
        elif event_type == "content_block_stop":
            index = event.get("index", -1)
            if index in self._partial_json:
                raw = "".join(self._partial_json.pop(index))
                try:
                    parsed = json.loads(raw) if raw.strip() else {}
                except json.JSONDecodeError as exc:
                    raise AgentResponseError(f"Malformed tool input: {raw[:200]}") from exc
                self._blocks[index]["input"] = parsed
        elif event_type == "message_delta":
            delta = event.get("delta") or {}
            self.stop_reason = delta.get("stop_reason", self.stop_reason)

    @property
    def content(self) -> list[dict[str, Any]]:
        return [self._blocks[index] for index in sorted(self._blocks)]

    @property
    def text(self) -> str:
        return "".join(
            block.get("text", "") for block in self.content if block.get("type") == "text"
        )

    def message(self) -> dict[str, Any]:
        return {
            "id": self.message_id,
            "type": "message",
            "role": "assistant",
            "model": self.model,
            "content": self.content,
            "stop_reason": self.stop_reason,
        }


def _to_api_content(blocks: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert tool-output blocks to Messages API ``tool_result`` content."""
    converted: list[dict[str, Any]] = []
    for block in blocks:
        if block.get("type") == "image":
            converted.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": block.get("mimeType", "image/png"),
                    "data": block.get("data", ""),
                },
            })
        elif block.get("type") == "text":
            converted.append({"type": "text", "text": block.get("text", "")})
    return converted
