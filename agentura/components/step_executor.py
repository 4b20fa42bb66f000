"""Execution of a single plan step."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from agentura.agents.prompts import STEP_PROMPT
from agentura.session.models import FileAttachment, FunctionCall, Plan, PlanStep, StepStatus
from agentura.session.store import SessionStore
from agentura.utils.error_handler import AgenturaError
from agentura.utils.logging_utils import log_step_execution

from .agent_runner import AgentRunner

LOGGER = logging.getLogger(__name__)


@dataclass
class StepOutcome:
    step_id: int
    status: StepStatus
    result: str
    sources: List[Dict[str, str]] = field(default_factory=list)
    function_calls: List[FunctionCall] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == StepStatus.COMPLETED


def substitute_outputs(text: str, outputs: Dict[str, str]) -> str:
    """Replace ``{output_key}`` references with committed step outputs."""

    for key, value in outputs.items():
        text = text.replace("{" + key + "}", value)
    return text


def build_step_prompt(step: PlanStep, plan: Plan, goal: str) -> str:
    """Prompt for one step: goal, status of every step, committed dependency outputs."""

    outputs = plan.outputs()
    dependency_blocks = []
    for dep_id in step.dependencies:
        dep = plan.step(dep_id)
        if dep.status != StepStatus.COMPLETED:
            continue
        label = f" ({dep.output_key})" if dep.output_key else ""
        dependency_blocks.append(f"Output of step {dep.step_id}{label}:\n{dep.result or ''}")
    dependency_text = "\n\n".join(dependency_blocks)
    if dependency_text:
        dependency_text += "\n"

    return STEP_PROMPT.format(
        goal=goal,
        plan_status=plan.status_summary(),
        dependency_outputs=dependency_text,
        step_id=step.step_id,
        description=substitute_outputs(step.description, outputs),
        acceptance_criteria=step.acceptance_criteria or "Complete the step as described.",
    )


class StepExecutor:
    """Runs one step against its bound agent and commits the outcome.

    Partial text is published to the step's result while streaming. The step
    is marked completed or failed exactly once, and errors are returned as a
    failed outcome rather than raised.
    """

    def __init__(self, runner: AgentRunner, store: SessionStore):
        self._runner = runner
        self._store = store

    async def execute_step(
        self,
        step: PlanStep,
        plan: Plan,
        goal: str,
        file: Optional[FileAttachment] = None,
    ) -> StepOutcome:
        log_step_execution(LOGGER, plan.id, step.model_dump(mode="json"))
        prompt = build_step_prompt(step, plan, goal)

        def publish(text: str) -> None:
            self._store.update_plan_step(plan.id, step.step_id, result=text)

        try:
            run = await self._runner.run(step.agent, prompt, file=file, on_text=publish)
        except asyncio.CancelledError:
            raise
        except AgenturaError as e:
            LOGGER.warning(f"Step {step.step_id} ({step.agent.value}) failed: {e}")
            return self._commit(plan.id, step.step_id, StepStatus.FAILED, e.user_message)
        except Exception as e:
            LOGGER.exception(f"Step {step.step_id} ({step.agent.value}) crashed")
            return self._commit(plan.id, step.step_id, StepStatus.FAILED, f"Error: {e}")

        calls = [FunctionCall(id=call.id, name=call.name, args=call.args) for call in run.function_calls]
        if run.error is not None:
            return self._commit(plan.id, step.step_id, StepStatus.FAILED, run.error, run.sources, calls)
        return self._commit(plan.id, step.step_id, StepStatus.COMPLETED, run.output, run.sources, calls)

    def _commit(
        self,
        plan_id: str,
        step_id: int,
        status: StepStatus,
        result: str,
        sources: Optional[List[Dict[str, str]]] = None,
        calls: Optional[List[FunctionCall]] = None,
    ) -> StepOutcome:
        self._store.update_plan_step(plan_id, step_id, status=status, result=result)
        return StepOutcome(step_id=step_id, status=status, result=result, sources=sources or [], function_calls=calls or [])
