"""Invoke a worker agent and apply its tool calls."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from agentura.agents import AgentKind
from agentura.agents.prompts import PERSONAS, SYNTHESIZER_PROMPT
from agentura.gateway import ChatTurn, FunctionCallPart, InlineFile, RemoteModelGateway
from agentura.session.models import FileAttachment, Message, Role
from agentura.tools.runtime import ToolResult, ToolRuntime
from agentura.utils.logging_utils import log_agent_response

LOGGER = logging.getLogger(__name__)


@dataclass
class AgentRun:
    kind: AgentKind
    text: str = ""
    sources: List[Dict[str, str]] = field(default_factory=list)
    function_calls: List[FunctionCallPart] = field(default_factory=list)
    tool_results: List[ToolResult] = field(default_factory=list)

    @property
    def output(self) -> str:
        """Tool results replace the raw text when any local tool ran."""
        if self.tool_results:
            return "\n\n".join(result.output for result in self.tool_results)
        return self.text

    @property
    def error(self) -> Optional[str]:
        failed = [result.output for result in self.tool_results if result.is_error]
        return "\n\n".join(failed) if failed else None


def history_turns(history: Sequence[Message]) -> List[ChatTurn]:
    turns = []
    for message in history:
        if message.role == Role.USER:
            turns.append(ChatTurn(role="user", text=message.content))
        elif message.role == Role.ASSISTANT and message.content:
            turns.append(ChatTurn(role="assistant", text=message.content))
    return turns


def inline_file(file: Optional[FileAttachment]) -> Optional[InlineFile]:
    if file is None:
        return None
    return InlineFile(name=file.name, mime_type=file.mime_type, data=file.content)


class AgentRunner:
    def __init__(self, gateway: RemoteModelGateway, tool_runtime: ToolRuntime):
        self._gateway = gateway
        self._tools = tool_runtime

    async def run(
        self,
        kind: AgentKind,
        prompt: str,
        *,
        history: Sequence[Message] = (),
        file: Optional[FileAttachment] = None,
        on_text: Optional[Callable[[str], None]] = None,
    ) -> AgentRun:
        """Stream one agent turn, then run any locally executable tool calls.

        Tool failures propagate as ``ToolExecutionError``; model failures as
        ``ModelInvocationError``.
        """
        turns = history_turns(history)
        turns.append(ChatTurn(role="user", text=prompt, file=inline_file(file)))

        result = await self._gateway.stream(kind, turns, on_text=on_text)
        run = AgentRun(kind=kind, text=result.text, sources=result.sources, function_calls=result.function_calls)
        log_agent_response(LOGGER, kind.value, result.text)

        for call in result.function_calls:
            tool_result = await self._tools.run(call.name, call.args)
            if tool_result is None:
                LOGGER.info(f"Recorded non-local tool call {call.name} from {kind.value}")
                continue
            run.tool_results.append(tool_result)
        return run

    async def synthesize(
        self,
        question: str,
        tool_output: str,
        *,
        on_text: Optional[Callable[[str], None]] = None,
    ) -> str:
        """Explain tool output in natural language with the Chat agent."""

        instruction = SYNTHESIZER_PROMPT.format(persona=PERSONAS.get(self._gateway.persona, ""))
        result = await self._gateway.stream(
            AgentKind.CHAT,
            [ChatTurn(role="user", text=f"Question:\n{question}\n\nTool output:\n{tool_output}")],
            instruction=instruction,
            tools=(),
            on_text=on_text,
        )
        return result.text
