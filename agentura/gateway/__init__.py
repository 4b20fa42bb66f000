"""Remote model gateway and generation service boundary."""

from .gateway import RemoteModelGateway, RetryPolicy
from .interfaces import (
    ChatTurn,
    FunctionCallPart,
    GenerationChunk,
    GenerationRequest,
    GenerationResult,
    GenerationService,
    InlineFile,
)
from .langchain_service import LangChainGenerationService
from .sources import extract_sources, merge_sources

__all__ = [
    "ChatTurn",
    "FunctionCallPart",
    "GenerationChunk",
    "GenerationRequest",
    "GenerationResult",
    "GenerationService",
    "InlineFile",
    "LangChainGenerationService",
    "RemoteModelGateway",
    "RetryPolicy",
    "extract_sources",
    "merge_sources",
]
