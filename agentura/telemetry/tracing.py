"""LangSmith tracing setup and per-call run metadata."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any, Dict

from agentura.config.settings import ObservabilitySettings

if TYPE_CHECKING:
    from agentura.gateway.interfaces import GenerationRequest

LOGGER = logging.getLogger(__name__)

_ENVIRONMENT = {
    "langsmith_project": "LANGCHAIN_PROJECT",
    "langsmith_api_key": "LANGCHAIN_API_KEY",
    "langsmith_endpoint": "LANGCHAIN_ENDPOINT",
}


def configure_tracing(settings: ObservabilitySettings) -> bool:
    """Export LangSmith settings to the environment LangChain reads.

    Returns whether tracing is switched on. Tracing without an API key is
    left off, since every traced run would fail to upload.
    """
    for field_name, variable in _ENVIRONMENT.items():
        value = getattr(settings, field_name)
        if value:
            os.environ[variable] = value

    if not settings.tracing_enabled:
        return False
    if not (settings.langsmith_api_key or os.environ.get("LANGCHAIN_API_KEY")):
        LOGGER.warning("LANGCHAIN_TRACING_V2 is set but no LangSmith API key is configured; tracing stays off")
        return False

    os.environ["LANGCHAIN_TRACING_V2"] = "true"
    LOGGER.info(f"LangSmith tracing enabled for project {settings.langsmith_project or 'default'}")
    return True


def generation_run_config(request: "GenerationRequest") -> Dict[str, Any]:
    """Run name, tags and metadata attached to one model call.

    Traces group by agent kind; the model id and output mode make it easy
    to filter for a misbehaving slot.
    """
    return {
        "run_name": request.agent,
        "tags": ["agentura", f"agent:{request.agent}"],
        "metadata": {
            "model_id": request.model_id,
            "json_mode": request.json_mode,
            "tools": [tool.name for tool in request.tools],
        },
    }
