"""Single-writer session store with subscriber notifications.

The orchestrator is the only writer. Every mutation is a discrete, synchronous
transition followed by an event; readers receive deep copies, so nothing
outside the store can change a message except through these methods.
"""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from pydantic import ValidationError

from agentura.utils.error_handler import InvalidTransitionError, MessageFinalizedError

from .models import (
    ALLOWED_TRANSITIONS,
    SESSION_VERSION,
    Message,
    Plan,
    PlanStep,
    SessionSnapshot,
    StepStatus,
)

LOGGER = logging.getLogger(__name__)


class StoreEventType(str, Enum):
    APPENDED = "appended"
    UPDATED = "updated"
    FINALIZED = "finalized"
    LOADING = "loading"
    CLEARED = "cleared"


@dataclass(frozen=True)
class StoreEvent:
    type: StoreEventType
    message_id: Optional[str] = None
    message: Optional[Message] = None
    is_loading: bool = False


Listener = Callable[[StoreEvent], None]


class SessionPersistence(Protocol):
    def save(self, serialized: str) -> None:
        ...

    def load(self) -> Optional[str]:
        ...


class SessionStore:
    def __init__(self) -> None:
        self._messages: List[Message] = []
        self._listeners: List[Listener] = []
        self._loading = False

    # ========== Subscriptions ==========

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event_type: StoreEventType, message: Optional[Message] = None) -> None:
        event = StoreEvent(
            type=event_type,
            message_id=message.id if message else None,
            message=message.model_copy(deep=True) if message else None,
            is_loading=self._loading,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                LOGGER.exception(f"Session listener failed on {event_type.value} event")

    # ========== Reads ==========

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def messages(self) -> List[Message]:
        return [message.model_copy(deep=True) for message in self._messages]

    def get_message(self, message_id: str) -> Message:
        return self._require(message_id).model_copy(deep=True)

    def get_plan(self, plan_id: str) -> Plan:
        _, plan = self._find_plan(plan_id)
        return plan.model_copy(deep=True)

    def recent_messages(self, limit: int, *, before: Optional[str] = None) -> List[Message]:
        """Last ``limit`` finalized messages, optionally only those before a given id."""

        messages = self._messages
        if before is not None:
            for index, message in enumerate(messages):
                if message.id == before:
                    messages = messages[:index]
                    break
        finished = [message for message in messages if message.finalized]
        return [message.model_copy(deep=True) for message in finished[-limit:]] if limit > 0 else []

    def _require(self, message_id: str) -> Message:
        for message in self._messages:
            if message.id == message_id:
                return message
        raise KeyError(f"Unknown message: {message_id}")

    def _find_plan(self, plan_id: str) -> Tuple[Message, Plan]:
        for message in self._messages:
            if message.plan is not None and message.plan.id == plan_id:
                return message, message.plan
        raise KeyError(f"Unknown plan: {plan_id}")

    @staticmethod
    def _check_open(message: Message) -> None:
        if message.finalized:
            raise MessageFinalizedError(f"Message {message.id} is finalized and cannot be modified")

    # ========== Message updates ==========

    def append_message(self, message: Message) -> Message:
        stored = message.model_copy(deep=True)
        if any(existing.id == stored.id for existing in self._messages):
            raise ValueError(f"Duplicate message id: {stored.id}")
        self._messages.append(stored)
        self._emit(StoreEventType.APPENDED, stored)
        return stored.model_copy(deep=True)

    def _apply(self, message: Message, changes: Dict[str, Any]) -> None:
        for key, value in changes.items():
            if key not in Message.model_fields or key in ("id", "finalized"):
                raise ValueError(f"Field '{key}' cannot be updated")
            setattr(message, key, copy.deepcopy(value))

    def update_message(self, message_id: str, **changes: Any) -> Message:
        message = self._require(message_id)
        self._check_open(message)
        self._apply(message, changes)
        self._emit(StoreEventType.UPDATED, message)
        return message.model_copy(deep=True)

    def append_trace(self, message_id: str, line: str) -> None:
        message = self._require(message_id)
        self._check_open(message)
        message.trace.append(line)
        self._emit(StoreEventType.UPDATED, message)

    def finalize_message(self, message_id: str, **changes: Any) -> Message:
        """Apply final changes, clear the loading flag and freeze the message."""

        message = self._require(message_id)
        self._check_open(message)
        self._apply(message, changes)
        message.is_loading = False
        message.finalized = True
        self._emit(StoreEventType.FINALIZED, message)
        return message.model_copy(deep=True)

    # ========== Plan step transitions ==========

    def _transition(self, step: PlanStep, status: StepStatus) -> None:
        if status not in ALLOWED_TRANSITIONS[step.status]:
            raise InvalidTransitionError(
                f"Step {step.step_id}: {step.status.value} -> {status.value} is not allowed"
            )
        now = time.time()
        if status == StepStatus.IN_PROGRESS:
            step.started_at = now
        else:
            step.ended_at = now
        step.status = status

    def begin_steps(self, plan_id: str, step_ids: Iterable[int]) -> List[PlanStep]:
        """Mark a batch of pending steps in-progress in one transition.

        Every step is checked before any is changed, so the batch either
        starts as a whole or not at all.
        """

        message, plan = self._find_plan(plan_id)
        self._check_open(message)
        steps = [plan.step(step_id) for step_id in step_ids]
        for step in steps:
            if step.status != StepStatus.PENDING:
                raise InvalidTransitionError(
                    f"Step {step.step_id} cannot start from status {step.status.value}"
                )
        for step in steps:
            self._transition(step, StepStatus.IN_PROGRESS)
        self._emit(StoreEventType.UPDATED, message)
        return [step.model_copy(deep=True) for step in steps]

    def update_plan_step(
        self,
        plan_id: str,
        step_id: int,
        *,
        status: Optional[StepStatus] = None,
        result: Optional[str] = None,
    ) -> PlanStep:
        """Apply a status transition and/or a result to one step.

        A result without a status change is a partial (streamed) update and is
        only accepted while the step is in progress.
        """

        message, plan = self._find_plan(plan_id)
        self._check_open(message)
        step = plan.step(step_id)
        if status is None:
            if step.status != StepStatus.IN_PROGRESS:
                raise InvalidTransitionError(
                    f"Step {step_id} is {step.status.value}; partial results need an in-progress step"
                )
        else:
            self._transition(step, status)
        if result is not None:
            step.result = result
        self._emit(StoreEventType.UPDATED, message)
        return step.model_copy(deep=True)

    def abandon_plan(self, plan_id: str) -> None:
        message, plan = self._find_plan(plan_id)
        self._check_open(message)
        plan.abandoned = True
        self._emit(StoreEventType.UPDATED, message)

    # ========== Session-level state ==========

    def set_loading(self, loading: bool) -> None:
        self._loading = loading
        self._emit(StoreEventType.LOADING)

    def clear(self) -> None:
        self._messages = []
        self._emit(StoreEventType.CLEARED)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(messages=self.messages)

    def to_json(self) -> str:
        return self.snapshot().model_dump_json()

    def load_json(self, data: str) -> bool:
        """Replace the session from serialized state; False when it is incompatible."""

        try:
            snapshot = SessionSnapshot.model_validate_json(data)
        except ValidationError as error:
            LOGGER.warning(f"Discarding unreadable session state: {error.error_count()} validation errors")
            return False
        if snapshot.version != SESSION_VERSION:
            LOGGER.warning(f"Discarding session state with version {snapshot.version} (expected {SESSION_VERSION})")
            return False

        for message in snapshot.messages:
            if not message.finalized:
                message.is_loading = False
                message.finalized = True
        self._messages = snapshot.messages
        self._loading = False
        self._emit(StoreEventType.CLEARED)
        return True

    def save(self, persistence: SessionPersistence) -> None:
        persistence.save(self.to_json())

    def restore(self, persistence: SessionPersistence) -> bool:
        data = persistence.load()
        if data is None:
            return False
        return self.load_json(data)
