"""Conditional routing helpers for the supervisor graph."""

from __future__ import annotations

import logging
from typing import Literal

from agentura.agents import AgentKind
from agentura.utils.logging_utils import log_routing_decision

from .state import FINAL, TERMINAL_STATUSES, GraphExecutionState

LOGGER = logging.getLogger("agentura.graph.routing")


def _terminal(state: GraphExecutionState) -> bool:
    return state.get("status") in TERMINAL_STATUSES


def entry_route(state: GraphExecutionState) -> Literal["guard", "dispatch"]:
    """Execute-plan requests skip routing and planning."""

    if state.get("plan_id"):
        decision, reason = "dispatch", f"Executing existing plan {state['plan_id']}"
    else:
        decision, reason = "guard", "New request"
    log_routing_decision(LOGGER, "START", decision, reason)
    return decision


def guard_route(state: GraphExecutionState) -> Literal["router", "finalize"]:
    if _terminal(state):
        decision, reason = "finalize", f"Status is '{state.get('status')}'"
    else:
        decision, reason = "router", "Input accepted"
    log_routing_decision(LOGGER, "guard", decision, reason)
    return decision


def router_route(state: GraphExecutionState) -> Literal["planner", "single_agent", "finalize"]:
    """Route to the planner or run the chosen specialist directly.

    Returns:
        "planner": the request needs a multi-step plan
        "single_agent": one specialist answers
        "finalize": routing ended the run (stop or error)
    """
    if _terminal(state):
        decision, reason = "finalize", f"Status is '{state.get('status')}'"
    elif state.get("next_agent") == AgentKind.PLANNER.value:
        decision, reason = "planner", "Planner route"
    else:
        decision, reason = "single_agent", f"Single agent {state.get('next_agent')}"
    log_routing_decision(LOGGER, "router", decision, reason)
    return decision


def single_route(state: GraphExecutionState) -> Literal["critic", "finalize"]:
    if not _terminal(state) and state.get("next_agent") == AgentKind.CRITIQUE.value:
        decision, reason = "critic", "Output needs a quality check"
    else:
        decision, reason = "finalize", "Single agent finished"
    log_routing_decision(LOGGER, "single_agent", decision, reason)
    return decision


def planner_route(state: GraphExecutionState) -> Literal["dispatch", "finalize"]:
    if _terminal(state):
        decision, reason = "finalize", f"Status is '{state.get('status')}'"
    else:
        decision, reason = "dispatch", f"Plan {state.get('plan_id')} ready"
    log_routing_decision(LOGGER, "planner", decision, reason)
    return decision


def dispatch_route(state: GraphExecutionState) -> Literal["supervisor", "finalize"]:
    if _terminal(state):
        decision, reason = "finalize", f"Status is '{state.get('status')}'"
    else:
        decision, reason = "supervisor", "No runnable steps left"
    log_routing_decision(LOGGER, "dispatch", decision, reason)
    return decision


def supervisor_route(state: GraphExecutionState) -> Literal["planner", "critic", "finalize"]:
    """Follow the supervisor's choice of next meta-agent.

    Returns:
        "planner": a new or extended plan is needed
        "critic": quality-check the current output
        "finalize": the result is accepted, or the run ended
    """
    next_agent = state.get("next_agent")
    if _terminal(state) or next_agent == FINAL:
        decision = "finalize"
    elif next_agent == AgentKind.PLANNER.value:
        decision = "planner"
    else:
        decision = "critic"
    log_routing_decision(LOGGER, "supervisor", decision, f"next_agent={next_agent}")
    return decision


def critic_route(state: GraphExecutionState) -> Literal["reflexion", "finalize"]:
    if not _terminal(state) and state.get("next_agent") == AgentKind.RETRY.value:
        decision, reason = "reflexion", "Below quality threshold with retry budget left"
    else:
        decision, reason = "finalize", "Output accepted or retry budget spent"
    log_routing_decision(LOGGER, "critic", decision, reason)
    return decision


def reflexion_route(state: GraphExecutionState) -> Literal["planner", "single_agent", "finalize"]:
    next_agent = state.get("next_agent")
    if _terminal(state) or next_agent == FINAL:
        decision = "finalize"
    elif next_agent == AgentKind.PLANNER.value:
        decision = "planner"
    else:
        decision = "single_agent"
    log_routing_decision(LOGGER, "reflexion", decision, f"next_agent={next_agent}")
    return decision
