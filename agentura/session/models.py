"""Session data model: messages, plans and reflexion entries."""

from __future__ import annotations

import itertools
import time
import uuid
from enum import Enum
from graphlib import CycleError, TopologicalSorter
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from agentura.agents.schema import AgentKind
from agentura.utils.error_handler import PlanStructureError

SESSION_VERSION = 2


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS: Dict[StepStatus, frozenset] = {
    StepStatus.PENDING: frozenset({StepStatus.IN_PROGRESS}),
    StepStatus.IN_PROGRESS: frozenset({StepStatus.COMPLETED, StepStatus.FAILED}),
    StepStatus.COMPLETED: frozenset(),
    StepStatus.FAILED: frozenset(),
}

_ids = itertools.count()


def new_message_id() -> str:
    """Unique, roughly time-ordered message id."""
    return f"msg-{time.time_ns():x}-{next(_ids)}"


def new_plan_id() -> str:
    return f"plan-{uuid.uuid4().hex[:12]}"


# ========== Attachments ==========

class FileAttachment(BaseModel):
    name: str
    mime_type: str
    content: str  # base64

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")


class RepoRef(BaseModel):
    """External repository referenced by a user message."""

    url: str
    owner: Optional[str] = None
    repo: Optional[str] = None
    file_tree: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class GroundingSource(BaseModel):
    uri: str
    title: str = ""


class FunctionCall(BaseModel):
    id: str
    name: str
    args: Dict[str, object] = Field(default_factory=dict)


# ========== Critique ==========

class CritiqueScores(BaseModel):
    faithfulness: float = Field(ge=0.0, le=5.0)
    coherence: float = Field(ge=0.0, le=5.0)
    coverage: float = Field(ge=0.0, le=5.0)

    @property
    def average(self) -> float:
        return (self.faithfulness + self.coherence + self.coverage) / 3


class CritiqueResult(BaseModel):
    scores: CritiqueScores
    critique: str = ""

    @property
    def average(self) -> float:
        return self.scores.average


# ========== Plans ==========

class PlanStep(BaseModel):
    step_id: int
    description: str
    acceptance_criteria: str = ""
    agent: AgentKind
    dependencies: List[int] = Field(default_factory=list)
    output_key: Optional[str] = None
    status: StepStatus = StepStatus.PENDING
    result: Optional[str] = None
    started_at: Optional[float] = None
    ended_at: Optional[float] = None

    @field_validator("dependencies")
    @classmethod
    def _dedupe_dependencies(cls, value: List[int]) -> List[int]:
        return list(dict.fromkeys(value))


class Plan(BaseModel):
    """Ordered collection of steps; owned by the message that introduced it."""

    id: str = Field(default_factory=new_plan_id)
    steps: List[PlanStep]
    abandoned: bool = False

    @model_validator(mode="after")
    def _unique_step_ids(self) -> "Plan":
        ids = [step.step_id for step in self.steps]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate step ids in plan {self.id}: {ids}")
        return self

    def step(self, step_id: int) -> PlanStep:
        for step in self.steps:
            if step.step_id == step_id:
                return step
        raise KeyError(f"Step {step_id} not in plan {self.id}")

    def validate_structure(self) -> None:
        """Reject unknown dependencies and dependency cycles."""

        known = {step.step_id for step in self.steps}
        graph: Dict[int, List[int]] = {}
        for step in self.steps:
            unknown = [dep for dep in step.dependencies if dep not in known]
            if unknown:
                raise PlanStructureError(
                    f"Step {step.step_id} depends on unknown steps {unknown}",
                    user_message=f"The plan is invalid: step {step.step_id} depends on missing steps {unknown}.",
                )
            graph[step.step_id] = list(step.dependencies)
        try:
            TopologicalSorter(graph).prepare()
        except CycleError as error:
            cycle = error.args[1] if len(error.args) > 1 else []
            raise PlanStructureError(
                f"Dependency cycle in plan {self.id}: {cycle}",
                user_message=f"The plan is invalid: steps {cycle} depend on each other in a cycle.",
            ) from error

    def runnable_steps(self) -> List[PlanStep]:
        """Pending steps whose dependencies are all completed."""

        completed = {step.step_id for step in self.steps if step.status == StepStatus.COMPLETED}
        return [
            step
            for step in self.steps
            if step.status == StepStatus.PENDING and all(dep in completed for dep in step.dependencies)
        ]

    def unfinished_steps(self) -> List[PlanStep]:
        return [step for step in self.steps if step.status in (StepStatus.PENDING, StepStatus.IN_PROGRESS)]

    def is_finished(self) -> bool:
        return not self.unfinished_steps()

    def outputs(self) -> Dict[str, str]:
        """Committed results of completed steps, keyed by output key."""

        return {
            step.output_key: step.result or ""
            for step in self.steps
            if step.output_key and step.status == StepStatus.COMPLETED
        }

    def status_summary(self) -> str:
        return "\n".join(
            f"- Step {step.step_id} [{step.status.value}] ({step.agent.value}): {step.description}"
            for step in self.steps
        )


# ========== Messages ==========

class Message(BaseModel):
    id: str = Field(default_factory=new_message_id)
    role: Role
    content: str = ""
    file: Optional[FileAttachment] = None
    repo: Optional[RepoRef] = None
    sources: List[GroundingSource] = Field(default_factory=list)
    function_calls: List[FunctionCall] = Field(default_factory=list)
    plan: Optional[Plan] = None
    critique: Optional[CritiqueResult] = None
    is_loading: bool = False
    agent: Optional[AgentKind] = None
    trace: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    finalized: bool = False
    created_at: float = Field(default_factory=time.time)


class ReflexionEntry(BaseModel):
    """A remembered failure; immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    embedding: List[float]
    prompt: str
    failed_output: str
    critique: str
    fix: Optional[str] = None
    created_at: float = Field(default_factory=time.time)


class SessionSnapshot(BaseModel):
    """Serializable session state (versioned envelope payload)."""

    version: int = SESSION_VERSION
    messages: List[Message] = Field(default_factory=list)
