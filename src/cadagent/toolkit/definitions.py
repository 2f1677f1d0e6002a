"""Built-in capability definitions for CAD conversations.

Each definition includes an action-oriented description, a JSON Schema
for its parameters, and a handler bound to a specific Conversation.
Handlers use explicit parameters (no ``**kwargs`` passthrough) so that
hallucinated arguments fail instead of being silently ignored.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from cadagent.exceptions import PathOutsideProjectError
from cadagent.prompts.system import ATTACHMENT_TOOL_NAME
from cadagent.toolkit.models import ToolDefinition, image_block, text_block

if TYPE_CHECKING:
    from collections.abc import Callable

    from cadagent.compiler import CompileResult, GeometryCompiler, ViewportCapture
    from cadagent.orchestrator.conversation import Conversation

logger = logging.getLogger(__name__)


class WriteFileArgs(BaseModel):
    """Arguments for ``write_file``."""

    path: str = Field(description="Project-relative path of the file to write.")
    content: str = Field(description="Complete new file content.")


def get_builtin_tools(
    conversation: Conversation,
    *,
    compiler: GeometryCompiler | None = None,
    viewport: ViewportCapture | None = None,
    on_compile: Callable[[CompileResult, str], None] | None = None,
) -> list[ToolDefinition]:
    """Build the built-in capabilities bound to ``conversation``.

    ``compile_openscad`` is only included when a compiler is given, and
    ``capture_viewport`` only when a viewport is given.

    Args:
        conversation: Conversation whose turn state (project directory,
            pending images, checkpoint) the handlers use.
        compiler: Geometry compiler for ``compile_openscad``.
        viewport: Viewport capture for ``capture_viewport``.
        on_compile: Called with ``(result, source)`` after a successful compile.

    Returns:
        List of ToolDefinition objects.
    """
    tools: list[ToolDefinition] = []

    if compiler is not None:
        tools.append(
            ToolDefinition(
                name="compile_openscad",
                description=(
                    "Compile OpenSCAD source code and return compilation output. "
                    "Use this to verify that OpenSCAD code is valid and get error details."
                ),
                parameters={
                    "type": "object",
                    "properties": {
                        "source": {
                            "type": "string",
                            "description": "Complete OpenSCAD source code to compile.",
                        },
                    },
                    "required": ["source"],
                },
                handler=lambda source: _handle_compile(compiler, source, on_compile),
            )
        )

    if viewport is not None:
        tools.append(
            ToolDefinition(
                name="capture_viewport",
                description=(
                    "Capture a screenshot of the 3D viewport. Returns the current "
                    "rendered view as a PNG image. Use this to see what the user "
                    "sees in the 3D viewer."
                ),
                parameters={"type": "object", "properties": {}},
                handler=lambda: _handle_capture(viewport),
            )
        )

    tools.extend([
        ToolDefinition(
            name=ATTACHMENT_TOOL_NAME,
            description=(
                "View image(s) the user attached to their message. Returns the "
                "images as PNG. Call this when the user mentions attaching images."
            ),
            parameters={"type": "object", "properties": {}},
            handler=lambda: _handle_view_attachments(conversation),
        ),
        ToolDefinition(
            name="read_file",
            description=(
                "Read a text file from the open project. Paths are relative "
                "to the project directory."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "Project-relative path of the file to read.",
                    },
                },
                "required": ["path"],
            },
            handler=lambda path: _handle_read_file(conversation, path),
        ),
        ToolDefinition.from_model(
            name="write_file",
            description=(
                "Create or overwrite a text file in the open project. The "
                "previous content is checkpointed so the user can undo every "
                "edit made while answering this message in one step."
            ),
            input_model=WriteFileArgs,
            handler=lambda path, content: _handle_write_file(conversation, path, content),
        ),
        ToolDefinition(
            name="list_files",
            description=(
                "List the entries of a directory in the open project. "
                "Directories are shown with a trailing slash."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "Project-relative directory (default: project root).",
                    },
                },
            },
            handler=lambda path=".": _handle_list_files(conversation, path),
        ),
    ])
    return tools


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_compile(
    compiler: GeometryCompiler,
    source: str,
    on_compile: Callable[[CompileResult, str], None] | None,
) -> str:
    result = await compiler.compile(source)
    if result.success and on_compile is not None:
        try:
            on_compile(result, source)
        except Exception:
            logger.debug("on_compile callback error", exc_info=True)
    if result.success:
        text = f"Compilation OK ({result.duration_ms}ms)"
        if result.diagnostics:
            text += f"\n{result.diagnostics}"
        return text
    return f"Compilation FAILED ({result.duration_ms}ms)\n{result.diagnostics}"


async def _handle_capture(viewport: ViewportCapture) -> list[dict]:
    data = await viewport.capture()
    if not data:
        return [text_block("No 3D viewport canvas found. Is a model loaded?")]
    return [image_block(data)]


def _handle_view_attachments(conversation: Conversation) -> list[dict]:
    images = conversation.pending_user_images
    if not images:
        return [text_block("No images attached.")]
    return [image.to_block() for image in images]


def _resolve_project_path(conversation: Conversation, path: str) -> Path:
    project_dir = conversation.project_dir
    if project_dir is None:
        raise ValueError("No project directory is open.")
    root = Path(project_dir).resolve()
    target = (root / path).resolve()
    if target != root and root not in target.parents:
        raise PathOutsideProjectError(path, str(root))
    return target


def _handle_read_file(conversation: Conversation, path: str) -> str:
    target = _resolve_project_path(conversation, path)
    with open(target, encoding="utf-8", newline="") as f:
        return f.read()


def _handle_write_file(conversation: Conversation, path: str, content: str) -> str:
    target = _resolve_project_path(conversation, path)
    conversation.snapshot_for_turn(str(target))
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8", newline="")
    logger.debug("write_file wrote %d chars to %s", len(content), target)
    return f"Wrote {len(content)} characters to {path}"


def _handle_list_files(conversation: Conversation, path: str) -> str:
    target = _resolve_project_path(conversation, path)
    entries = sorted(
        f"{entry.name}/" if entry.is_dir() else entry.name
        for entry in target.iterdir()
        if not entry.name.startswith(".")
    )
    if not entries:
        return "(empty directory)"
    return "\n".join(entries)
