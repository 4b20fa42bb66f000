"""Quality scoring of an output against the goal."""

from __future__ import annotations

import logging
from typing import Any, Dict, Sequence

from pydantic import ValidationError

from agentura.agents import AgentKind
from agentura.gateway import ChatTurn, RemoteModelGateway
from agentura.session.models import CritiqueResult, GroundingSource
from agentura.utils.error_handler import StructuredOutputError

LOGGER = logging.getLogger(__name__)

SCORE_KEYS = ("faithfulness", "coherence", "coverage")


def _normalise(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise StructuredOutputError(f"Critique is not an object: {data!r}")
    scores = data.get("scores") if isinstance(data.get("scores"), dict) else {key: data.get(key) for key in SCORE_KEYS}
    clamped = {}
    for key in SCORE_KEYS:
        try:
            clamped[key] = max(0.0, min(5.0, float(scores.get(key))))
        except (TypeError, ValueError):
            raise StructuredOutputError(f"Critique score '{key}' is missing or not a number: {scores.get(key)!r}")
    return {"scores": clamped, "critique": str(data.get("critique") or "")}


class Critic:
    def __init__(self, gateway: RemoteModelGateway):
        self._gateway = gateway

    async def critique(self, goal: str, output: str, sources: Sequence[GroundingSource] = ()) -> CritiqueResult:
        """Score ``output`` for faithfulness, coherence and coverage on a 0-5 scale."""

        parts = [f"Goal:\n{goal}"]
        if sources:
            parts.append("Sources:\n" + "\n".join(f"- {source.title} ({source.uri})" for source in sources))
        parts.append(f"Output:\n{output}")

        data = await self._gateway.generate_json(AgentKind.CRITIQUE, [ChatTurn(role="user", text="\n\n".join(parts))])
        try:
            result = CritiqueResult.model_validate(_normalise(data))
        except ValidationError as e:
            raise StructuredOutputError(f"Invalid critique: {e}") from e
        LOGGER.info(f"Critique average {result.average:.2f}: {result.critique[:120]}")
        return result
