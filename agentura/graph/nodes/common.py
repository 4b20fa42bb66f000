"""Helpers shared by graph nodes."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from agentura.agents import AgentKind
from agentura.agents.schema import FINAL
from agentura.archive.reflexion_memory import ReflexionMemory
from agentura.session.models import Message, ReflexionEntry, Role
from agentura.session.store import SessionStore
from agentura.utils.json_utils import to_display_text

from ..control import Tracer
from ..state import GraphExecutionState

LOGGER = logging.getLogger("agentura.graph.nodes")


def stopped_update(tracer: Tracer, state: GraphExecutionState, node_name: str) -> Dict[str, Any]:
    """State update for a user-requested stop observed at ``node_name``."""

    line = tracer(state, node_name, "Stop requested; no further work will be started.")
    return {"status": "stopped", "next_agent": FINAL, "history": [line]}


def continue_in_new_message(
    store: SessionStore,
    tracer: Tracer,
    state: GraphExecutionState,
    node_name: str,
    agent: AgentKind,
    note: str,
    pending_lines: Sequence[str] = (),
    **fields: Any,
) -> Tuple[str, str]:
    """Close the current message with its last output and open a replacement.

    The closed message keeps the earlier attempt visible; the replacement
    starts with a copy of the trace so far, including ``pending_lines``
    this node already wrote but has not yet returned. Returns the new message id and
    the trace line written.
    """
    line = tracer(state, node_name, note)
    store.finalize_message(state["message_id"], content=to_display_text(state.get("last_output")))
    replacement = store.append_message(
        Message(
            role=Role.ASSISTANT,
            agent=agent,
            is_loading=True,
            trace=list(state.get("history", [])) + list(pending_lines) + [line],
            **fields,
        )
    )
    return replacement.id, line


async def record_lesson(
    memory: Optional[ReflexionMemory],
    tracer: Tracer,
    state: GraphExecutionState,
    node_name: str,
    *,
    prompt: str,
    output: str,
    critique: str,
    fix: Optional[str] = None,
) -> List[str]:
    """Store a failed attempt. Memory outages are traced, never fatal."""

    if memory is None:
        return []
    try:
        await memory.record(prompt, output, critique, fix=fix)
    except Exception as e:
        LOGGER.warning(f"{node_name}: reflexion entry not saved: {type(e).__name__}: {e}")
        return [tracer(state, node_name, "Lesson not saved: reflexion memory is unavailable.")]
    return []


async def recall_lessons(
    memory: Optional[ReflexionMemory],
    tracer: Tracer,
    state: GraphExecutionState,
    node_name: str,
    goal: str,
) -> Tuple[List[ReflexionEntry], List[str]]:
    if memory is None:
        return [], []
    try:
        lessons = await memory.recall(goal)
    except Exception as e:
        LOGGER.warning(f"{node_name}: reflexion recall failed: {type(e).__name__}: {e}")
        return [], [tracer(state, node_name, "Past lessons unavailable; planning without them.")]
    if not lessons:
        return [], []
    return lessons, [tracer(state, node_name, f"Recalled {len(lessons)} lesson(s) from past failures.")]
