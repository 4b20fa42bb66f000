"""Supervisor decision call: choose the next agent or finish."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict

from agentura.agents import AgentKind
from agentura.agents.schema import FINAL
from agentura.gateway import ChatTurn, RemoteModelGateway
from agentura.utils.error_handler import AgenturaError, SupervisorDecisionError

LOGGER = logging.getLogger(__name__)

CHOICES = (AgentKind.PLANNER.value, AgentKind.CRITIQUE.value, FINAL)
_FINAL_ALIASES = {FINAL, "final", "finish", "done", "end", "__end__"}


@dataclass(frozen=True)
class SupervisorDecision:
    next_agent: str  # an AgentKind value or FINAL
    reason: str = ""


def parse_decision(data: Any) -> SupervisorDecision:
    if not isinstance(data, dict):
        raise SupervisorDecisionError(f"Supervisor returned {data!r}")
    raw = str(data.get("next_agent") or "").strip()
    reason = str(data.get("reason") or "")

    if raw.lower() in _FINAL_ALIASES:
        return SupervisorDecision(FINAL, reason)
    kind = AgentKind.parse(raw)
    if kind is None or kind.value not in CHOICES:
        raise SupervisorDecisionError(
            f"Supervisor chose invalid next agent {raw!r}",
            user_message=f"The supervisor made an invalid decision ('{raw}'); the run was stopped.",
        )
    return SupervisorDecision(kind.value, reason)


class Supervisor:
    def __init__(self, gateway: RemoteModelGateway):
        self._gateway = gateway

    async def decide(self, snapshot: Dict[str, Any]) -> SupervisorDecision:
        """Pick the next agent from a compact execution snapshot.

        Raises:
            SupervisorDecisionError: the call failed or the choice is invalid.
        """
        text = json.dumps(snapshot, ensure_ascii=False, indent=2, default=str)
        try:
            data = await self._gateway.generate_json(AgentKind.SUPERVISOR, [ChatTurn(role="user", text=text)])
        except AgenturaError as e:
            raise SupervisorDecisionError(
                f"Supervisor call failed: {e}",
                user_message=f"The supervisor could not decide the next step: {e.user_message}",
            ) from e
        decision = parse_decision(data)
        LOGGER.info(f"Supervisor -> {decision.next_agent}: {decision.reason}")
        return decision
