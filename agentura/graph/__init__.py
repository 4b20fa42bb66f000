"""Supervisor graph: state, nodes, routing and assembly."""

from .builder import build_orchestration_graph
from .control import RunControl, Tracer
from .state import FINAL, TERMINAL_STATUSES, GraphExecutionState

__all__ = [
    "FINAL",
    "GraphExecutionState",
    "RunControl",
    "TERMINAL_STATUSES",
    "Tracer",
    "build_orchestration_graph",
]
