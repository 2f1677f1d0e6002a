"""Interfaces to the native collaborators invoked by capabilities.

The geometry compiler and the viewport are external to cadagent: their
call shapes are defined here, plus an OpenSCAD subprocess compiler.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompileResult:
    """Outcome of one geometry compilation.

    Attributes:
        success: Whether the compiler produced an artifact.
        artifact: Compiled mesh bytes (e.g. STL), or None on failure.
        aux_data: Auxiliary output (e.g. OFF text with colors), or None.
        diagnostics: Combined compiler stdout/stderr.
        duration_ms: Wall-clock compile time in milliseconds.
    """

    success: bool
    artifact: bytes | None = None
    aux_data: str | None = None
    diagnostics: str = ""
    duration_ms: int = 0


@runtime_checkable
class GeometryCompiler(Protocol):
    """Compiles CAD source text into a mesh artifact."""

    async def compile(self, source: str) -> CompileResult:
        ...


@runtime_checkable
class ViewportCapture(Protocol):
    """Captures the currently rendered 3D view."""

    async def capture(self) -> str | None:
        """Return a base64 PNG of the viewport, or None if nothing is rendered."""
        ...


class OpenScadCompiler:
    """GeometryCompiler backed by the ``openscad`` command-line binary.

    Compiles to STL and, best effort, to colored OFF in parallel. Never
    raises for compiler failures: they come back as an unsuccessful
    CompileResult with the diagnostics filled in.

    Usage::

        compiler = OpenScadCompiler()  # finds openscad on PATH
        result = await compiler.compile("cube(10);")
    """

    def __init__(self, binary: str | None = None, timeout: float = 600.0) -> None:
        self._binary = binary or shutil.which("openscad") or "openscad"
        self._timeout = timeout

    @property
    def binary(self) -> str:
        return self._binary

    async def compile(self, source: str) -> CompileResult:
        started = time.monotonic()
        with tempfile.TemporaryDirectory(prefix="cadagent_") as tmp:
            input_path = Path(tmp) / "model.scad"
            stl_path = Path(tmp) / "model.stl"
            off_path = Path(tmp) / "model.off"
            input_path.write_text(source, encoding="utf-8")

            (stl_code, diagnostics), (off_code, _) = await asyncio.gather(
                self._run(input_path, stl_path),
                self._run(input_path, off_path),
            )
            duration_ms = int((time.monotonic() - started) * 1000)

            if stl_code != 0 or not stl_path.exists():
                logger.debug("OpenSCAD failed with code %s", stl_code)
                return CompileResult(
                    success=False,
                    diagnostics=diagnostics or f"OpenSCAD exited with code {stl_code}",
                    duration_ms=duration_ms,
                )

            aux_data = None
            if off_code == 0 and off_path.exists():
                try:
                    aux_data = off_path.read_text(encoding="utf-8")
                except (OSError, UnicodeDecodeError):
                    logger.debug("Could not read OFF output", exc_info=True)

            return CompileResult(
                success=True,
                artifact=stl_path.read_bytes(),
                aux_data=aux_data,
                diagnostics=diagnostics,
                duration_ms=duration_ms,
            )

    async def _run(self, input_path: Path, output_path: Path) -> tuple[int | None, str]:
        """Run one export. Returns (exit code, combined output)."""
        try:
            process = await asyncio.create_subprocess_exec(
                self._binary,
                "-o",
                str(output_path),
                str(input_path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            return None, f"Failed to spawn OpenSCAD: {exc}"

        try:
            output, _ = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return None, f"OpenSCAD timed out after {self._timeout:g}s"
        return process.returncode, output.decode("utf-8", errors="replace")
