"""Goal decomposition into a dependency-annotated plan."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from agentura.agents import AgentKind
from agentura.agents.prompts import LESSONS_HEADER
from agentura.gateway import ChatTurn, RemoteModelGateway
from agentura.session.models import Plan, PlanStep, ReflexionEntry
from agentura.utils.error_handler import AgenturaError, PlanningError
from agentura.utils.logging_utils import log_plan_created

LOGGER = logging.getLogger(__name__)


class PlanStepDraft(BaseModel):
    step_id: int
    description: str
    acceptance_criteria: str = ""
    agent: str
    dependencies: List[int] = Field(default_factory=list)
    output_key: Optional[str] = None


class PlanDraft(BaseModel):
    steps: List[PlanStepDraft]


def render_lessons(lessons: Sequence[ReflexionEntry]) -> str:
    if not lessons:
        return ""
    lines = [LESSONS_HEADER]
    for entry in lessons:
        fix = entry.fix or "unknown"
        lines.append(f"- Goal: {entry.prompt[:200]} | What went wrong: {entry.critique[:300]} | Fix: {fix[:200]}")
    return "\n".join(lines)


class Planner:
    def __init__(self, gateway: RemoteModelGateway):
        self._gateway = gateway

    async def plan(
        self,
        goal: str,
        available_kinds: Sequence[AgentKind],
        past_lessons: Sequence[ReflexionEntry] = (),
    ) -> Plan:
        """Produce a plan whose steps are bound only to ``available_kinds``.

        Raises:
            PlanningError: the model failed or its output is not a usable plan.
        """
        try:
            data = await self._gateway.generate_json(
                AgentKind.PLANNER,
                [ChatTurn(role="user", text=goal)],
                template_values={
                    "agent_kinds": ", ".join(kind.value for kind in available_kinds),
                    "lessons": render_lessons(past_lessons),
                },
            )
        except AgenturaError as e:
            raise PlanningError(f"Planner call failed: {e}", user_message=f"Planning failed: {e.user_message}") from e

        if isinstance(data, list):
            data = {"steps": data}
        elif isinstance(data, dict) and "steps" not in data and "plan" in data:
            data = {"steps": data["plan"]}
        try:
            draft = PlanDraft.model_validate(data)
        except ValidationError as e:
            raise PlanningError(
                f"Planner output does not match the plan schema: {e}",
                user_message="Planning failed: the planner returned a malformed plan.",
            ) from e

        if not draft.steps:
            raise PlanningError("Planner returned no steps", user_message="Planning failed: the plan has no steps.")

        allowed = set(available_kinds)
        steps: List[PlanStep] = []
        for item in draft.steps:
            kind = AgentKind.parse(item.agent)
            if kind is None or kind not in allowed:
                raise PlanningError(
                    f"Step {item.step_id} is bound to unavailable agent {item.agent!r}",
                    user_message=f"Planning failed: step {item.step_id} uses an unknown agent '{item.agent}'.",
                )
            steps.append(
                PlanStep(
                    step_id=item.step_id,
                    description=item.description,
                    acceptance_criteria=item.acceptance_criteria,
                    agent=kind,
                    dependencies=item.dependencies,
                    output_key=item.output_key or None,
                )
            )

        try:
            plan = Plan(steps=steps)
        except ValidationError as e:
            raise PlanningError(
                f"Invalid plan: {e}",
                user_message="Planning failed: the plan has duplicate step ids.",
            ) from e

        log_plan_created(LOGGER, plan.model_dump(mode="json"))
        return plan
