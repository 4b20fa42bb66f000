"""Generation service backed by LangChain chat models."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, AsyncIterator, Callable, Dict, List

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from agentura.telemetry.tracing import generation_run_config

from .interfaces import ChatTurn, FunctionCallPart, GenerationChunk, GenerationRequest

LOGGER = logging.getLogger(__name__)

ModelResolver = Callable[[str], BaseChatModel]


def _file_parts(turn: ChatTurn) -> List[Dict[str, Any]]:
    file = turn.file
    if file is None:
        return []
    if file.mime_type.startswith("image/"):
        return [{"type": "image_url", "image_url": {"url": f"data:{file.mime_type};base64,{file.data}"}}]
    try:
        text = base64.b64decode(file.data).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        LOGGER.warning(f"Attachment {file.name} is not valid base64, sending name only")
        text = ""
    return [{"type": "text", "text": f"Attached file {file.name}:\n{text}"}]


def to_langchain_messages(request: GenerationRequest) -> List[BaseMessage]:
    """Convert a request into LangChain messages."""

    messages: List[BaseMessage] = []
    if request.system_instruction:
        messages.append(SystemMessage(content=request.system_instruction))
    for turn in request.turns:
        if turn.role == "assistant":
            messages.append(AIMessage(content=turn.text))
            continue
        parts = _file_parts(turn)
        if parts:
            messages.append(HumanMessage(content=[{"type": "text", "text": turn.text}, *parts]))
        else:
            messages.append(HumanMessage(content=turn.text))
    return messages


def _chunk_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part.get("text", "") if isinstance(part, dict) else str(part)
            for part in content
        )
    return ""


class LangChainGenerationService:
    """Streams generations through ``astream`` on a resolved chat model."""

    def __init__(self, model_resolver: ModelResolver):
        self._resolve = model_resolver

    def _prepare(self, request: GenerationRequest):
        model = self._resolve(request.model_id)
        runnable = model
        if request.tools:
            runnable = model.bind_tools([tool.to_openai() for tool in request.tools])
        bind_kwargs: Dict[str, Any] = {}
        if request.json_mode:
            bind_kwargs["response_format"] = {"type": "json_object"}
        if request.temperature is not None:
            bind_kwargs["temperature"] = request.temperature
        if request.max_tokens is not None:
            bind_kwargs["max_tokens"] = request.max_tokens
        if bind_kwargs:
            runnable = runnable.bind(**bind_kwargs)
        return runnable.with_config(**generation_run_config(request))

    async def stream(self, request: GenerationRequest) -> AsyncIterator[GenerationChunk]:
        runnable = self._prepare(request)
        messages = to_langchain_messages(request)

        aggregate = None
        async for chunk in runnable.astream(messages):
            text = _chunk_text(chunk.content)
            if text:
                yield GenerationChunk(text=text)
            aggregate = chunk if aggregate is None else aggregate + chunk

        if aggregate is None:
            return

        calls = [
            FunctionCallPart(id=call.get("id") or f"call_{index}", name=call["name"], args=call.get("args") or {})
            for index, call in enumerate(getattr(aggregate, "tool_calls", None) or [])
        ]
        metadata = dict(getattr(aggregate, "response_metadata", None) or {})
        if calls or metadata:
            yield GenerationChunk(function_calls=calls, grounding_metadata=metadata or None)
