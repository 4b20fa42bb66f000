"""Shared utilities (logging, error handling, JSON helpers)."""

from .error_handler import (
    AgenturaError,
    GenerationTimeoutError,
    InvalidTransitionError,
    MessageFinalizedError,
    ModelInvocationError,
    OrchestratorBusyError,
    PlanningError,
    PlanStructureError,
    RateLimitError,
    ReflexionError,
    StructuredOutputError,
    SupervisorDecisionError,
    ToolExecutionError,
    is_transient_error,
    parse_api_error_message,
    with_error_boundary,
)
from .json_utils import extract_json, strip_code_fences, to_display_text

__all__ = [
    "AgenturaError",
    "GenerationTimeoutError",
    "InvalidTransitionError",
    "MessageFinalizedError",
    "ModelInvocationError",
    "OrchestratorBusyError",
    "PlanningError",
    "PlanStructureError",
    "RateLimitError",
    "ReflexionError",
    "StructuredOutputError",
    "SupervisorDecisionError",
    "ToolExecutionError",
    "is_transient_error",
    "parse_api_error_message",
    "with_error_boundary",
    "extract_json",
    "strip_code_fences",
    "to_display_text",
]
