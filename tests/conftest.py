"""Pytest configuration and fixtures for all tests.

This file is automatically loaded by pytest and ensures proper test environment setup.
"""

import sys
from pathlib import Path
from typing import Any, Callable, Optional

import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding

# Ensure project root is in PYTHONPATH for imports to work
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from agentura.agents import build_agent_registry  # noqa: E402
from agentura.config import Settings  # noqa: E402
from agentura.gateway import RemoteModelGateway, RetryPolicy  # noqa: E402
from agentura.models import build_default_registry  # noqa: E402
from agentura.runtime import build_orchestrator  # noqa: E402
from tests.support import FakeCodeExecutor, ScriptedGenerationService, fake_repo_fetcher, make_settings  # noqa: E402


# ========== Fixtures ==========

@pytest.fixture
def embeddings():
    return DeterministicFakeEmbedding(size=32)


@pytest.fixture
def agent_registry():
    return build_agent_registry()


@pytest.fixture
def model_registry():
    return build_default_registry(
        {slot: f"{slot}-model" for slot in ("base", "reason", "vision", "code", "chat", "embedding")}
    )


@pytest.fixture
def service():
    return ScriptedGenerationService()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def gateway(service, agent_registry, model_registry, sleeps):
    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    return RemoteModelGateway(
        service,
        agent_registry,
        model_registry,
        retry_policy=RetryPolicy(max_attempts=3, backoff_base_seconds=0.5, backoff_multiplier=2.0, backoff_max_seconds=4.0),
        sleep=fake_sleep,
    )


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def code_executor():
    return FakeCodeExecutor()


@pytest.fixture
def make_orchestrator(service, embeddings, code_executor) -> Callable[..., Any]:
    """Factory building a fully wired orchestrator over the fakes."""

    def factory(settings: Optional[Settings] = None, **overrides: Any):
        options = {
            "generation_service": service,
            "embeddings": embeddings,
            "code_executor": code_executor,
            "repo_fetcher": fake_repo_fetcher,
        }
        options.update(overrides)
        return build_orchestrator(settings or make_settings(), **options)

    return factory
