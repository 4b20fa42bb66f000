"""Graph node builders."""

from .critic import build_critic_node
from .dispatch import build_dispatch_node
from .finalize import build_finalize_node
from .guard import build_guard_node
from .planner import build_planner_node
from .reflexion import build_reflexion_node
from .router import build_router_node
from .single_agent import build_single_agent_node
from .supervisor import build_supervisor_node

__all__ = [
    "build_critic_node",
    "build_dispatch_node",
    "build_finalize_node",
    "build_guard_node",
    "build_planner_node",
    "build_reflexion_node",
    "build_router_node",
    "build_single_agent_node",
    "build_supervisor_node",
]
