"""Boundary types for the hosted generation service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Literal, Optional, Protocol, runtime_checkable

from agentura.tools.declarations import ToolSpec


@dataclass(slots=True)
class InlineFile:
    """File content passed to the model alongside a turn."""

    name: str
    mime_type: str
    data: str  # base64


@dataclass(slots=True)
class ChatTurn:
    """One entry of the conversation sent to the model."""

    role: Literal["user", "assistant"]
    text: str
    file: Optional[InlineFile] = None


@dataclass(slots=True)
class GenerationRequest:
    agent: str
    model_id: str
    system_instruction: str
    turns: List[ChatTurn]
    tools: List[ToolSpec] = field(default_factory=list)
    json_mode: bool = False
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


@dataclass(slots=True)
class FunctionCallPart:
    id: str
    name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class GenerationChunk:
    """Incremental piece of a streamed response."""

    text: str = ""
    function_calls: List[FunctionCallPart] = field(default_factory=list)
    grounding_metadata: Optional[Dict[str, Any]] = None


@dataclass(slots=True)
class GenerationResult:
    """Aggregated outcome of a streamed generation."""

    text: str = ""
    function_calls: List[FunctionCallPart] = field(default_factory=list)
    sources: List[Dict[str, str]] = field(default_factory=list)


@runtime_checkable
class GenerationService(Protocol):
    """Anything that can stream a generation for a request."""

    def stream(self, request: GenerationRequest) -> AsyncIterator[GenerationChunk]:
        ...
