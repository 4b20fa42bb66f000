"""Dispatch node: run every ready plan step in rounds until none is runnable."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Set

from agentura.agents import AgentKind
from agentura.components.step_executor import StepExecutor, StepOutcome
from agentura.graph.control import RunControl, Tracer
from agentura.graph.state import GraphExecutionState
from agentura.session.models import FunctionCall, GroundingSource, Plan, StepStatus
from agentura.session.store import SessionStore
from agentura.utils.error_handler import PlanStructureError, with_error_boundary
from agentura.utils.logging_utils import log_node_entry, log_node_exit

from .common import stopped_update

LOGGER = logging.getLogger("agentura.graph.dispatch")


def blocked_step_ids(plan: Plan) -> Set[int]:
    """Steps that can never run because a (transitive) dependency failed."""

    blocked = {step.step_id for step in plan.steps if step.status == StepStatus.FAILED}
    changed = True
    while changed:
        changed = False
        for step in plan.steps:
            if step.step_id in blocked or step.status != StepStatus.PENDING:
                continue
            if any(dep in blocked for dep in step.dependencies):
                blocked.add(step.step_id)
                changed = True
    return blocked - {step.step_id for step in plan.steps if step.status == StepStatus.FAILED}


def collect_output(plan: Plan) -> str:
    """Results of the completed steps nothing else depends on."""

    depended_on = {dep for step in plan.steps for dep in step.dependencies}
    completed = [step for step in plan.steps if step.status == StepStatus.COMPLETED]
    sinks = [step for step in completed if step.step_id not in depended_on] or completed
    if len(sinks) == 1:
        return sinks[0].result or ""
    return "\n\n".join(f"## Step {step.step_id}: {step.description}\n{step.result or ''}" for step in sinks)


def build_dispatch_node(
    *,
    executor: StepExecutor,
    store: SessionStore,
    tracer: Tracer,
    run_control: RunControl,
):
    @with_error_boundary("dispatch")
    async def dispatch_node(state: GraphExecutionState) -> dict:
        log_node_entry(LOGGER, "dispatch", state)
        plan_id = state["plan_id"]
        message_id = state["message_id"]
        goal = state.get("goal", "")

        store.get_plan(plan_id).validate_structure()

        lines: List[str] = []
        sources: List[Dict[str, str]] = []
        calls: List[FunctionCall] = []

        while True:
            if run_control.stop_requested:
                store.abandon_plan(plan_id)
                updates = stopped_update(tracer, state, "dispatch")
                updates["history"] = lines + updates["history"]
                updates["last_output"] = collect_output(store.get_plan(plan_id))
                return updates

            plan = store.get_plan(plan_id)
            runnable = plan.runnable_steps()
            if not runnable:
                break

            ids = [step.step_id for step in runnable]
            started = store.begin_steps(plan_id, ids)
            lines.append(tracer(state, "dispatch", f"Dispatching step(s) {ids}."))

            # Every step in the round sees the same committed snapshot.
            snapshot = store.get_plan(plan_id)
            results = await asyncio.gather(
                *(executor.execute_step(step, snapshot, goal, state.get("file")) for step in started),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result

            outcomes: List[StepOutcome] = list(results)
            for outcome in outcomes:
                sources.extend(outcome.sources)
                calls.extend(outcome.function_calls)
                if outcome.ok:
                    lines.append(tracer(state, "dispatch", f"Step {outcome.step_id} completed."))
                else:
                    lines.append(tracer(state, "dispatch", f"Step {outcome.step_id} failed: {outcome.result[:200]}"))

        plan = store.get_plan(plan_id)
        blocked = blocked_step_ids(plan)
        stuck = [step.step_id for step in plan.unfinished_steps() if step.step_id not in blocked]
        if stuck:
            raise PlanStructureError(
                f"Dependency deadlock in plan {plan_id}: steps {stuck} can never run",
                user_message=f"The plan cannot finish: steps {stuck} wait on each other.",
            )
        if blocked:
            lines.append(tracer(state, "dispatch", f"Step(s) {sorted(blocked)} skipped because a dependency failed."))

        failed = [step for step in plan.steps if step.status == StepStatus.FAILED]
        errors = "\n".join(f"Step {step.step_id}: {step.result}" for step in failed) or None
        output = collect_output(plan)
        if not output and errors:
            output = errors

        sources = list({source["uri"]: source for source in sources}.values())
        store.update_message(
            message_id,
            content=output,
            sources=[GroundingSource(**source) for source in sources],
            function_calls=calls,
        )

        updates = {
            "last_output": output,
            "last_sources": sources,
            "last_error": errors,
            "next_agent": AgentKind.SUPERVISOR.value,
            "history": lines,
        }
        log_node_exit(LOGGER, "dispatch", updates)
        return updates

    return dispatch_node
