"""Request routing to a user-facing agent kind."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from agentura.agents import AgentKind, AgentRegistry
from agentura.gateway import ChatTurn, RemoteModelGateway
from agentura.session.models import FileAttachment, Message

LOGGER = logging.getLogger(__name__)

FALLBACK_KIND = AgentKind.CHAT


@dataclass(frozen=True)
class RoutingResult:
    kind: AgentKind
    complexity: int = 5
    reason: str = ""
    fell_back: bool = False


def render_history(history: Sequence[Message], limit: int = 500) -> str:
    lines = []
    for message in history:
        speaker = message.role.value
        if message.agent is not None:
            speaker = f"{speaker}/{message.agent.value}"
        content = message.content if len(message.content) <= limit else message.content[:limit] + "..."
        lines.append(f"[{speaker}] {content}")
    return "\n".join(lines)


class Router:
    """Classifies a request; never raises and never returns an internal-only kind."""

    def __init__(self, gateway: RemoteModelGateway, agent_registry: AgentRegistry):
        self._gateway = gateway
        self._agents = agent_registry

    async def classify(
        self,
        goal: str,
        history: Sequence[Message] = (),
        file: Optional[FileAttachment] = None,
    ) -> RoutingResult:
        if file is not None and file.is_image:
            return RoutingResult(kind=AgentKind.VISION, reason="Image attachment")

        prompt = goal
        if history:
            prompt = f"Recent conversation:\n{render_history(history)}\n\nLatest request:\n{goal}"

        try:
            data = await self._gateway.generate_json(
                AgentKind.ROUTER,
                [ChatTurn(role="user", text=prompt)],
                template_values={"routes": self._agents.describe_routes()},
            )
        except Exception as e:
            LOGGER.warning(f"Routing failed, falling back to {FALLBACK_KIND.value}: {e}")
            return RoutingResult(kind=FALLBACK_KIND, reason=f"Routing failed: {e}", fell_back=True)

        if not isinstance(data, dict):
            return RoutingResult(kind=FALLBACK_KIND, reason="Router returned no route", fell_back=True)

        kind = AgentKind.parse(data.get("route"))
        if kind is None or not self._agents.is_user_facing(kind):
            LOGGER.warning(f"Router chose unknown route {data.get('route')!r}, falling back to {FALLBACK_KIND.value}")
            return RoutingResult(
                kind=FALLBACK_KIND,
                reason=f"Unrecognised route {data.get('route')!r}",
                fell_back=True,
            )

        return RoutingResult(
            kind=kind,
            complexity=_clamp_complexity(data.get("complexity", data.get("complexity_score"))),
            reason=str(data.get("reason") or ""),
        )

    async def route(
        self,
        goal: str,
        history: Sequence[Message] = (),
        file: Optional[FileAttachment] = None,
    ) -> AgentKind:
        return (await self.classify(goal, history, file)).kind


def _clamp_complexity(value: object) -> int:
    try:
        return max(1, min(10, int(value)))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 5
