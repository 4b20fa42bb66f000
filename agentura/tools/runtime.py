"""Local side effects for tool calls emitted by agents."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from agentura.archive.retriever import ArchiveRetriever, format_matches
from agentura.utils.error_handler import ToolExecutionError
from agentura.utils.logging_utils import log_tool_call, log_tool_result

from .code_executor import CodeExecutor
from .declarations import CODE_INTERPRETER, EXECUTABLE_TOOLS, SEARCH_ARCHIVE

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolResult:
    name: str
    output: str
    is_error: bool = False


class ToolRuntime:
    """Executes recognised tool calls; unrecognised ones are left to the caller."""

    def __init__(self, *, code_executor: Optional[CodeExecutor] = None, retriever: Optional[ArchiveRetriever] = None):
        self._code_executor = code_executor
        self._retriever = retriever

    def handles(self, name: str) -> bool:
        return name in EXECUTABLE_TOOLS

    async def run(self, name: str, args: Dict[str, Any]) -> Optional[ToolResult]:
        """Run a tool call and return its result, or None if the tool is not local."""

        if not self.handles(name):
            return None
        log_tool_call(LOGGER, name, args)
        try:
            if name == CODE_INTERPRETER.name:
                result = await self._run_code(args)
            else:
                result = await self._search_archive(args)
        except ToolExecutionError:
            raise
        except Exception as e:
            LOGGER.error(f"Tool {name} failed: {e}")
            raise ToolExecutionError(f"{name} failed: {e}", user_message=f"The {name} tool failed: {e}") from e
        log_tool_result(LOGGER, name, result.output, success=not result.is_error)
        return result

    async def _run_code(self, args: Dict[str, Any]) -> ToolResult:
        code = str(args.get("code") or "").strip()
        if not code:
            return ToolResult(CODE_INTERPRETER.name, "No code was provided.", is_error=True)
        if self._code_executor is None:
            return ToolResult(CODE_INTERPRETER.name, "Code execution is not available.", is_error=True)
        execution = await self._code_executor.execute(code)
        return ToolResult(CODE_INTERPRETER.name, execution.render(), is_error=execution.failed)

    async def _search_archive(self, args: Dict[str, Any]) -> ToolResult:
        query = str(args.get("query") or "").strip()
        if not query:
            return ToolResult(SEARCH_ARCHIVE.name, "No search query was provided.", is_error=True)
        if self._retriever is None:
            return ToolResult(SEARCH_ARCHIVE.name, "The document archive is not available.", is_error=True)
        matches = await self._retriever.search(query, source=args.get("source") or None)
        return ToolResult(SEARCH_ARCHIVE.name, format_matches(matches))
