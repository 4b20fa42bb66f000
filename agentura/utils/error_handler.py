"""Unified error handling for Agentura graph nodes and components."""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Callable, Dict

LOGGER = logging.getLogger(__name__)


class AgenturaError(Exception):
    """Base exception for Agentura errors."""

    def __init__(self, message: str, user_message: str | None = None):
        super().__init__(message)
        self.user_message = user_message or message


class ModelInvocationError(AgenturaError):
    """Error during model invocation (after retries are exhausted)."""
    pass


class RateLimitError(ModelInvocationError):
    """Rate limit exceeded error."""
    pass


class GenerationTimeoutError(ModelInvocationError):
    """Remote generation call timed out."""
    pass


class StructuredOutputError(AgenturaError):
    """A JSON-mode response could not be parsed into the expected schema."""
    pass


class PlanningError(AgenturaError):
    """The planner could not produce a valid plan."""
    pass


class PlanStructureError(AgenturaError):
    """A plan is structurally invalid (unknown dependency, cycle, deadlock)."""
    pass


class SupervisorDecisionError(AgenturaError):
    """The supervisor did not return a valid next agent."""
    pass


class ReflexionError(AgenturaError):
    """Prompt refinement produced no usable prompt."""
    pass


class ToolExecutionError(AgenturaError):
    """Error during tool execution."""
    pass


class InvalidTransitionError(AgenturaError):
    """A plan step status change that the lifecycle does not allow."""
    pass


class MessageFinalizedError(AgenturaError):
    """Attempt to mutate a message after it was finalized."""
    pass


class OrchestratorBusyError(AgenturaError):
    """Another request is already being processed."""
    pass


def error_terminal_update(node_name: str, user_message: str) -> Dict[str, Any]:
    """State update that halts the run in the error terminal state."""

    from agentura.agents.schema import FINAL

    return {
        "status": "error",
        "next_agent": FINAL,
        "last_error": user_message,
        "history": [f"[{node_name}] error: {user_message}"],
    }


def with_error_boundary(node_name: str):
    """Decorator to add an error boundary to graph nodes.

    Catches exceptions and converts them into an error-terminal state update,
    so the finalize node always runs and clears the loading state.

    Example:
        @with_error_boundary("planner")
        async def planner_node(state: GraphExecutionState) -> dict:
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(state):
            try:
                return await func(state)
            except asyncio.CancelledError:
                raise
            except AgenturaError as e:
                LOGGER.error(f"{node_name} failed: {e}")
                return error_terminal_update(node_name, e.user_message)
            except Exception as e:
                LOGGER.exception(f"{node_name} unexpected error", exc_info=e)
                # Don't expose internal error details to users
                return error_terminal_update(
                    node_name, "Execution failed unexpectedly. Please try again."
                )

        return wrapper

    return decorator


def is_transient_error(error: Exception) -> bool:
    """Return True for network / rate-limit style failures worth retrying."""

    if isinstance(error, (RateLimitError, GenerationTimeoutError, asyncio.TimeoutError, ConnectionError)):
        return True

    if type(error).__name__ in {
        "RateLimitError",
        "APIConnectionError",
        "APITimeoutError",
        "InternalServerError",
        "ServiceUnavailableError",
        "ConnectError",
        "ReadTimeout",
    }:
        return True

    error_str = str(error).lower()
    return any(
        marker in error_str
        for marker in ("429", "rate limit", "rate_limit", "timeout", "timed out", "503", "temporarily unavailable")
    )


def invocation_error_type(error: Exception) -> type:
    """Pick the ``ModelInvocationError`` subclass that describes a failed call."""

    if isinstance(error, ModelInvocationError):
        return type(error)

    lowered = str(error).lower()
    if type(error).__name__ == "RateLimitError" or any(m in lowered for m in ("429", "rate limit", "rate_limit", "quota")):
        return RateLimitError
    if isinstance(error, asyncio.TimeoutError) or any(m in lowered for m in ("timeout", "timed out")):
        return GenerationTimeoutError
    return ModelInvocationError


def parse_api_error_message(error: Exception) -> str:
    """Convert model invocation errors to user-friendly messages."""

    if isinstance(error, AgenturaError):
        return error.user_message

    error_str = str(error)
    lowered = error_str.lower()

    if not error_str:
        return "An unknown error occurred."

    if "401" in error_str or "403" in error_str or "api key not valid" in lowered or "invalid_api_key" in lowered:
        return "Authentication Error. Please ensure your API Key is valid."

    if "429" in error_str or "rate_limit" in lowered or "quota" in lowered:
        return "API quota exceeded. Please wait and try again later."

    if "safety" in lowered:
        return "The response was blocked by the safety filter due to potential policy violations."

    if "timeout" in lowered:
        return "The model did not respond in time. Please try again."

    if "context_length" in lowered:
        return "The conversation is too long for the model. Please start a new session."

    return f"Error: {error_str}"
