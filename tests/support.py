"""Test doubles and payload builders shared by unit and integration tests.

Nothing here talks to a network: generation is scripted per agent kind and
code execution is faked.
"""

from __future__ import annotations

import asyncio
import inspect
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from langchain_core.embeddings import DeterministicFakeEmbedding

from agentura.config import GatewaySettings, GovernanceSettings, SafetySettings, Settings
from agentura.gateway import FunctionCallPart, GenerationChunk, GenerationRequest
from agentura.session.models import RepoRef
from agentura.tools.code_executor import ExecutionResult


# ========== Scripted generation ==========

@dataclass
class Reply:
    """One scripted model response."""

    text: str = ""
    chunks: Optional[List[str]] = None
    function_calls: List[FunctionCallPart] = field(default_factory=list)
    grounding: Optional[Dict[str, Any]] = None
    error_after_first_chunk: Optional[Exception] = None

    def pieces(self) -> List[str]:
        if self.chunks is not None:
            return list(self.chunks)
        return [self.text] if self.text else []


def tool_call(name: str, call_id: str = "call-1", **args: Any) -> FunctionCallPart:
    return FunctionCallPart(id=call_id, name=name, args=args)


def _as_reply(value: Any) -> Reply:
    if isinstance(value, Reply):
        return value
    if isinstance(value, (dict, list)):
        return Reply(text=json.dumps(value))
    return Reply(text=str(value))


class ScriptedGenerationService:
    """Generation service answering from per-agent queues.

    Each agent kind has its own queue; the last entry repeats once the queue
    is down to one. Entries may be strings, JSON-able dicts, ``Reply``
    objects, exceptions (raised before any chunk) or callables receiving the
    request (sync or async) and returning any of those.
    """

    DEFAULTS = {"Verifier": "SAFE"}

    def __init__(self, script: Optional[Dict[str, List[Any]]] = None, default: Any = "OK"):
        self.script: Dict[str, List[Any]] = {agent: list(replies) for agent, replies in (script or {}).items()}
        self.default = default
        self.requests: List[GenerationRequest] = []

    def add(self, agent: str, *replies: Any) -> "ScriptedGenerationService":
        self.script.setdefault(agent, []).extend(replies)
        return self

    def calls(self, agent: str) -> List[GenerationRequest]:
        return [request for request in self.requests if request.agent == agent]

    def _next(self, agent: str) -> Any:
        queue = self.script.get(agent)
        if not queue:
            return self.DEFAULTS.get(agent, self.default)
        return queue.pop(0) if len(queue) > 1 else queue[0]

    async def stream(self, request: GenerationRequest):
        self.requests.append(request)
        reply = self._next(request.agent)
        if callable(reply) and not isinstance(reply, Reply):
            reply = reply(request)
            if inspect.isawaitable(reply):
                reply = await reply
        if isinstance(reply, BaseException):
            raise reply
        reply = _as_reply(reply)

        for index, piece in enumerate(reply.pieces()):
            yield GenerationChunk(text=piece)
            if index == 0 and reply.error_after_first_chunk is not None:
                raise reply.error_after_first_chunk
        if reply.function_calls or reply.grounding:
            yield GenerationChunk(function_calls=list(reply.function_calls), grounding_metadata=reply.grounding)


# ========== Embeddings ==========

class UnreachableEmbeddings(DeterministicFakeEmbedding):
    """Embedding endpoint that is down for every query."""

    async def aembed_query(self, text: str) -> List[float]:
        raise ConnectionError("embedding endpoint unreachable")


# ========== Code execution ==========

class FakeCodeExecutor:
    """Returns queued results; the last one repeats."""

    def __init__(self, *results: ExecutionResult):
        self.results = list(results) or [ExecutionResult(stdout="42")]
        self.executed: List[str] = []

    async def execute(self, code: str) -> ExecutionResult:
        self.executed.append(code)
        return self.results.pop(0) if len(self.results) > 1 else self.results[0]


async def fake_repo_fetcher(url: str) -> RepoRef:
    return RepoRef(url=url, owner="octo", repo="demo", file_tree=["README.md", "src/app.py"])


def make_settings(*, guard: bool = False, **governance: Any) -> Settings:
    """Settings with instant retries and, unless asked for, no constitution check."""
    return Settings(
        governance=GovernanceSettings(**governance),
        gateway=GatewaySettings(backoff_base_seconds=0.0, backoff_max_seconds=0.0),
        safety=SafetySettings(constitution_enabled=guard),
    )


def plan_json(*steps: Dict[str, Any]) -> Dict[str, Any]:
    """Planner reply with sensible defaults for each step."""

    filled = []
    for index, step in enumerate(steps, start=1):
        item = {
            "step_id": index,
            "description": f"Step {index}",
            "acceptance_criteria": "",
            "agent": "Chat",
            "dependencies": [],
        }
        item.update(step)
        filled.append(item)
    return {"steps": filled}


def critique_json(score: float, critique: str = "") -> Dict[str, Any]:
    return {"scores": {"faithfulness": score, "coherence": score, "coverage": score}, "critique": critique}


def route_json(route: str, complexity: int = 5) -> Dict[str, Any]:
    return {"route": route, "complexity": complexity, "reason": f"{route} fits"}


def decision_json(next_agent: str, reason: str = "") -> Dict[str, Any]:
    return {"next_agent": next_agent, "reason": reason}


class Gate:
    """Lets a test hold several concurrent generations open at once."""

    def __init__(self, expected: int):
        self.expected = expected
        self.arrived = 0
        self.max_concurrent = 0
        self._active = 0
        self._event = asyncio.Event()

    async def wait(self) -> None:
        self.arrived += 1
        self._active += 1
        self.max_concurrent = max(self.max_concurrent, self._active)
        if self.arrived >= self.expected:
            self._event.set()
        await asyncio.wait_for(self._event.wait(), timeout=2.0)
        self._active -= 1
