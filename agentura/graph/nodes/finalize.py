"""Finalize node: write the terminal result into the owning message."""

from __future__ import annotations

import logging

from agentura.components.guard import REFUSAL_TEXT, ConstitutionGuard
from agentura.graph.control import Tracer
from agentura.graph.state import GraphExecutionState
from agentura.session.models import GroundingSource
from agentura.session.store import SessionStore
from agentura.utils.error_handler import with_error_boundary
from agentura.utils.json_utils import to_display_text
from agentura.utils.logging_utils import log_node_entry, log_node_exit

LOGGER = logging.getLogger("agentura.graph.finalize")

STOPPED_TEXT = "Stopped."


def build_finalize_node(*, guard: ConstitutionGuard, store: SessionStore, tracer: Tracer):
    @with_error_boundary("finalize")
    async def finalize_node(state: GraphExecutionState) -> dict:
        log_node_entry(LOGGER, "finalize", state)
        message_id = state["message_id"]
        status = state.get("status") or "running"
        output = to_display_text(state.get("last_output"))
        error = None
        lines = []

        if status == "stopped":
            content = output or STOPPED_TEXT
        elif status == "refused":
            content = REFUSAL_TEXT
        elif status == "error":
            error = state.get("last_error") or "Execution failed."
            content = error
            lines.append(tracer(state, "finalize", f"Run ended with an error: {error}"))
        else:
            status = "done"
            content = output
            if content and not await guard.is_allowed(content):
                content = REFUSAL_TEXT
                lines.append(tracer(state, "finalize", "Output violates the constitution; replaced with a refusal."))

        plan_id = state.get("plan_id")
        if plan_id:
            plan = store.get_plan(plan_id)
            if not plan.is_finished() and not plan.abandoned:
                store.abandon_plan(plan_id)
                lines.append(tracer(state, "finalize", f"Plan {plan_id} abandoned with unfinished steps."))

        lines.append(tracer(state, "finalize", f"Finished with status '{status}'."))
        sources = [GroundingSource(**source) for source in state.get("last_sources") or []]
        changes = {"content": content, "error": error}
        if sources:
            changes["sources"] = sources
        store.finalize_message(message_id, **changes)

        updates = {"status": status, "history": lines}
        log_node_exit(LOGGER, "finalize", updates)
        return updates

    return finalize_node
