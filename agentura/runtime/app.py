"""Runtime assembly for the orchestration engine."""

from __future__ import annotations

import logging
from typing import Optional

from langchain_core.embeddings import Embeddings

from agentura.agents import build_agent_registry
from agentura.archive import ArchiveRetriever, InMemoryVectorStore, ReflexionMemory, Reranker, VectorStore
from agentura.components import (
    ConstitutionGuard,
    Critic,
    Planner,
    PromptRefiner,
    Router,
    StepExecutor,
    Supervisor,
)
from agentura.components.agent_runner import AgentRunner
from agentura.config import Settings, get_settings
from agentura.gateway import GenerationService, LangChainGenerationService, RemoteModelGateway, RetryPolicy
from agentura.graph import RunControl, Tracer, build_orchestration_graph
from agentura.models import build_default_registry
from agentura.orchestrator import Orchestrator, RepoFetcher
from agentura.persistence import SqliteSessionPersistence
from agentura.session.store import SessionPersistence, SessionStore
from agentura.telemetry import configure_tracing
from agentura.tools.code_executor import CodeExecutor, SubprocessCodeExecutor
from agentura.tools.github_repo import fetch_repo_ref
from agentura.tools.runtime import ToolRuntime

from .model_resolver import build_embeddings, build_model_resolver, resolve_model_configs

LOGGER = logging.getLogger(__name__)


def build_orchestrator(
    settings: Optional[Settings] = None,
    *,
    generation_service: Optional[GenerationService] = None,
    embeddings: Optional[Embeddings] = None,
    code_executor: Optional[CodeExecutor] = None,
    vector_store: Optional[VectorStore] = None,
    persistence: Optional[SessionPersistence] = None,
    repo_fetcher: RepoFetcher = fetch_repo_ref,
) -> Orchestrator:
    """Wire every component from settings into a ready ``Orchestrator``.

    Any collaborator can be injected; the defaults talk to OpenAI-compatible
    endpoints, run code in a subprocess and keep the archive in memory.
    """

    settings = settings or get_settings()
    configure_tracing(settings.observability)

    model_configs = resolve_model_configs(settings)
    model_registry = build_default_registry({slot: cfg["id"] for slot, cfg in model_configs.items()})
    agent_registry = build_agent_registry(settings.agents_config_path)

    service = generation_service or LangChainGenerationService(build_model_resolver(model_configs))
    embeddings = embeddings or build_embeddings(model_configs)

    gateway = RemoteModelGateway(
        service,
        agent_registry,
        model_registry,
        retry_policy=RetryPolicy.from_settings(settings.gateway),
        persona=settings.governance.persona,
    )

    archive = settings.archive
    vector_store = vector_store if vector_store is not None else InMemoryVectorStore()
    retriever = ArchiveRetriever(
        embeddings,
        vector_store,
        reranker=Reranker(gateway) if archive.rerank_enabled else None,
        top_k=archive.top_k,
    )
    memory = ReflexionMemory(
        embeddings,
        threshold=archive.reflexion_similarity_threshold,
        top_k=archive.reflexion_top_k,
    )
    tool_runtime = ToolRuntime(
        code_executor=code_executor
        or SubprocessCodeExecutor(
            timeout=settings.execution.timeout_seconds,
            python_executable=settings.execution.python_executable,
        ),
        retriever=retriever,
    )

    if persistence is None and settings.observability.session_db_path:
        persistence = SqliteSessionPersistence(settings.observability.session_db_path)

    store = SessionStore()
    run_control = RunControl()
    runner = AgentRunner(gateway, tool_runtime)

    graph = build_orchestration_graph(
        agent_registry=agent_registry,
        store=store,
        router=Router(gateway, agent_registry),
        planner=Planner(gateway),
        runner=runner,
        executor=StepExecutor(runner, store),
        supervisor=Supervisor(gateway),
        critic=Critic(gateway),
        refiner=PromptRefiner(gateway),
        guard=ConstitutionGuard(gateway, enabled=settings.safety.constitution_enabled),
        governance=settings.governance,
        run_control=run_control,
        memory=memory,
        tracer=Tracer(store),
    )

    orchestrator = Orchestrator(
        graph=graph,
        store=store,
        agent_registry=agent_registry,
        governance=settings.governance,
        run_control=run_control,
        embeddings=embeddings,
        vector_store=vector_store,
        memory=memory,
        persistence=persistence,
        repo_fetcher=repo_fetcher,
        min_chunk_chars=archive.min_chunk_chars,
    )
    if orchestrator.restore_session():
        LOGGER.info(f"Restored {len(store.messages)} messages from the saved session")
    return orchestrator
