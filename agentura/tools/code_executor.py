"""Code execution boundary."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
import tempfile
from dataclasses import dataclass
from typing import Optional, Protocol

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionResult:
    stdout: str
    stderr: Optional[str] = None

    @property
    def failed(self) -> bool:
        return bool(self.stderr)

    def render(self) -> str:
        if self.stderr:
            return f"{self.stdout}\n[stderr]\n{self.stderr}".strip()
        return self.stdout or "(no output)"


class CodeExecutor(Protocol):
    async def execute(self, code: str) -> ExecutionResult:
        ...


class SubprocessCodeExecutor:
    """Runs each snippet in a fresh interpreter process.

    No state survives between calls; output capture starts empty every time.
    """

    def __init__(self, *, timeout: float = 30.0, python_executable: Optional[str] = None):
        self.timeout = timeout
        self.python = python_executable or sys.executable

    async def execute(self, code: str) -> ExecutionResult:
        LOGGER.info(f"Executing code snippet ({len(code)} chars)")
        with tempfile.TemporaryDirectory(prefix="agentura-exec-") as workdir:
            process = await asyncio.create_subprocess_exec(
                self.python,
                "-I",
                "-c",
                code,
                cwd=workdir,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env={"PATH": os.environ.get("PATH", "/usr/bin:/bin"), "PYTHONIOENCODING": "utf-8"},
            )
            try:
                stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                LOGGER.warning(f"Code execution timed out after {self.timeout}s")
                return ExecutionResult(stdout="", stderr=f"TimeoutError: execution exceeded {self.timeout}s")

        err = stderr.decode("utf-8", errors="replace").strip()
        return ExecutionResult(stdout=stdout.decode("utf-8", errors="replace").rstrip(), stderr=err or None)
