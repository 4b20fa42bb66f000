"""Top-level request handling: one graph run per user message."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, Iterable, Optional

from agentura.agents import AgentKind, AgentRegistry
from agentura.archive import InMemoryVectorStore, ReflexionMemory, VectorStore, ingest_text
from agentura.config import GovernanceSettings
from agentura.graph import GraphExecutionState, RunControl
from agentura.session.models import FileAttachment, Message, Plan, RepoRef, Role, StepStatus
from agentura.session.store import Listener, SessionPersistence, SessionStore
from agentura.tools.github_repo import fetch_repo_ref, render_repo_context
from agentura.utils.error_handler import OrchestratorBusyError, parse_api_error_message
from agentura.utils.logging_utils import log_error, log_user_message

LOGGER = logging.getLogger(__name__)

RepoFetcher = Callable[[str], Awaitable[RepoRef]]


class Orchestrator:
    """Owns the session store and drives the compiled graph.

    Requests are processed one at a time. Every request resolves exactly
    once with its final assistant message, and the session loading flag is
    cleared whatever happens inside the graph.
    """

    def __init__(
        self,
        *,
        graph,
        store: SessionStore,
        agent_registry: AgentRegistry,
        governance: GovernanceSettings,
        run_control: RunControl,
        embeddings=None,
        vector_store: Optional[VectorStore] = None,
        memory: Optional[ReflexionMemory] = None,
        persistence: Optional[SessionPersistence] = None,
        repo_fetcher: RepoFetcher = fetch_repo_ref,
        min_chunk_chars: int = 20,
    ):
        self._graph = graph
        self.store = store
        self.agents = agent_registry
        self.governance = governance
        self.run_control = run_control
        self._embeddings = embeddings
        self.vector_store = vector_store if vector_store is not None else InMemoryVectorStore()
        self.memory = memory
        self._persistence = persistence
        self._fetch_repo = repo_fetcher
        self._min_chunk_chars = min_chunk_chars
        self._busy = False

    # ========== Session ==========

    @property
    def busy(self) -> bool:
        return self._busy

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.store.subscribe(listener)

    def restore_session(self) -> bool:
        if self._persistence is None:
            return False
        return self.store.restore(self._persistence)

    def reset_session(self) -> None:
        self._ensure_idle()
        self.store.clear()
        self._save()

    def stop(self) -> None:
        """Request a cooperative stop; takes effect at the next node boundary."""
        if self._busy:
            LOGGER.info("Stop requested")
            self.run_control.request_stop()

    # ========== Requests ==========

    async def send_message(
        self,
        prompt: str,
        file: Optional[FileAttachment] = None,
        repo_url: Optional[str] = None,
        forced_agent: Optional[AgentKind] = None,
    ) -> Message:
        """Process one user message and return the final assistant message.

        Raises:
            OrchestratorBusyError: another request is still running.
            ValueError: ``forced_agent`` is not a user-facing agent.
        """
        self._ensure_idle()
        if forced_agent is not None and not self.agents.is_user_facing(forced_agent):
            raise ValueError(f"{forced_agent.value} cannot be selected directly")

        self._begin()
        try:
            log_user_message(LOGGER, prompt)
            repo = await self._fetch_repo(repo_url) if repo_url else None
            user = self.store.append_message(
                Message(role=Role.USER, content=prompt, file=file, repo=repo, finalized=True)
            )
            assistant = self.store.append_message(Message(role=Role.ASSISTANT, is_loading=True))
            state = self._initial_state(
                message_id=assistant.id,
                user_message_id=user.id,
                goal=prompt,
                file=file,
                repo_context=render_repo_context(repo) if repo is not None else None,
                forced_agent=forced_agent,
            )
            message_id = await self._run(state)
        finally:
            self._end()
        return self.store.get_message(message_id)

    async def execute_plan(
        self,
        plan: Plan,
        completed_step_ids: Iterable[int] = (),
        goal: Optional[str] = None,
    ) -> Message:
        """Run a fresh copy of ``plan`` in a new assistant message.

        Steps listed in ``completed_step_ids`` keep their results and count as
        completed, so execution resumes from the first unfinished step.
        """
        self._ensure_idle()
        completed = set(completed_step_ids)
        fresh = Plan(
            steps=[
                step.model_copy(
                    update={
                        "status": StepStatus.COMPLETED if step.step_id in completed else StepStatus.PENDING,
                        "result": step.result if step.step_id in completed else None,
                        "started_at": None,
                        "ended_at": None,
                    },
                    deep=True,
                )
                for step in plan.steps
            ]
        )
        goal = goal or self._goal_for_plan(plan.id) or "\n".join(step.description for step in plan.steps)

        self._begin()
        try:
            assistant = self.store.append_message(
                Message(role=Role.ASSISTANT, agent=AgentKind.PLANNER, plan=fresh, is_loading=True)
            )
            state = self._initial_state(message_id=assistant.id, goal=goal, plan_id=fresh.id, route=AgentKind.PLANNER)
            message_id = await self._run(state)
        finally:
            self._end()
        return self.store.get_message(message_id)

    # ========== Archive ==========

    async def ingest_document(self, text: str, source: str, on_progress=None) -> int:
        if self._embeddings is None:
            raise RuntimeError("No embedding model is configured")
        return await ingest_text(
            text,
            source,
            embeddings=self._embeddings,
            store=self.vector_store,
            min_chars=self._min_chunk_chars,
            on_progress=on_progress,
        )

    def archive_sources(self) -> Dict[str, int]:
        return self.vector_store.list_sources()

    def delete_source(self, source: str) -> int:
        return self.vector_store.delete_by_source(source)

    def clear_archive(self) -> None:
        self.vector_store.clear_all()

    # ========== Internals ==========

    def _ensure_idle(self) -> None:
        if self._busy:
            raise OrchestratorBusyError(
                "A request is already running",
                user_message="Please wait for the current request to finish or stop it.",
            )

    def _begin(self) -> None:
        self._busy = True
        self.run_control.reset()
        self.store.set_loading(True)

    def _end(self) -> None:
        self._fail_open_messages("Execution ended without a result.")
        self.store.set_loading(False)
        self._busy = False
        self._save()

    def _save(self) -> None:
        if self._persistence is not None:
            self.store.save(self._persistence)

    def _initial_state(self, *, message_id: str, goal: str, **extra) -> GraphExecutionState:
        state: GraphExecutionState = {
            "message_id": message_id,
            "goal": goal,
            "current_prompt": goal,
            "history": [],
            "last_output": None,
            "last_sources": [],
            "last_error": None,
            "next_agent": "",
            "critique": None,
            "retries_used": 0,
            "retry_budget": self.governance.retry_budget,
            "loops": 0,
            "max_loops": self.governance.max_loops,
            "status": "running",
        }
        state.update(extra)
        return state

    async def _run(self, state: GraphExecutionState) -> str:
        """Invoke the graph; returns the id of the message holding the result."""

        config = {"recursion_limit": self.governance.max_loops * 6 + 20}
        try:
            final = await self._graph.ainvoke(state, config=config)
            message_id = final.get("message_id", state["message_id"])
        except Exception as e:
            log_error(LOGGER, e, "graph run")
            message_id = self._last_assistant_id(state["message_id"])
            self._fail_open_messages(parse_api_error_message(e))
        return message_id

    def _fail_open_messages(self, error: str) -> None:
        for message in self.store.messages:
            if message.role == Role.ASSISTANT and not message.finalized:
                LOGGER.warning(f"Finalizing message {message.id} left open by the run")
                self.store.finalize_message(message.id, content=message.content or error, error=error)

    def _last_assistant_id(self, default: str) -> str:
        for message in reversed(self.store.messages):
            if message.role == Role.ASSISTANT:
                return message.id
        return default

    def _goal_for_plan(self, plan_id: str) -> Optional[str]:
        previous_user: Optional[str] = None
        for message in self.store.messages:
            if message.role == Role.USER:
                previous_user = message.content
            elif message.plan is not None and message.plan.id == plan_id:
                return previous_user
        return None
