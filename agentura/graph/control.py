"""Run control shared between the orchestrator and graph nodes."""

from __future__ import annotations

import logging
from typing import Optional

from agentura.session.store import SessionStore

from .state import GraphExecutionState

LOGGER = logging.getLogger(__name__)


class RunControl:
    """Cooperative stop flag, checked at every node boundary and dispatch round."""

    def __init__(self) -> None:
        self._stop = False

    @property
    def stop_requested(self) -> bool:
        return self._stop

    def request_stop(self) -> None:
        self._stop = True

    def reset(self) -> None:
        self._stop = False


class Tracer:
    """Publishes trace lines to the owning message as they happen."""

    def __init__(self, store: SessionStore):
        self._store = store

    def __call__(self, state: GraphExecutionState, node: str, text: str, *, message_id: Optional[str] = None) -> str:
        line = f"[{node}] {text}"
        target = message_id or state.get("message_id")
        if target:
            self._store.append_trace(target, line)
        LOGGER.info(line)
        return line
