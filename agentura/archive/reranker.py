"""LLM relevance reranking of archive matches."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import replace
from typing import List

from agentura.agents import AgentKind
from agentura.gateway import ChatTurn, RemoteModelGateway

from .vector_store import VectorMatch

LOGGER = logging.getLogger(__name__)

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def parse_score(text: str) -> float:
    """First number in ``text`` clamped to [0, 1]; 0 when there is none."""

    match = _NUMBER.search(text or "")
    if not match:
        return 0.0
    return max(0.0, min(1.0, float(match.group())))


class Reranker:
    """Scores every match with the Reranker agent concurrently and re-sorts."""

    def __init__(self, gateway: RemoteModelGateway):
        self._gateway = gateway

    async def _score(self, query: str, match: VectorMatch) -> VectorMatch:
        prompt = f"Query: {query}\nDocument: {match.text}\nScore:"
        text = await self._gateway.generate_text(AgentKind.RERANKER, [ChatTurn(role="user", text=prompt)])
        return replace(match, score=parse_score(text))

    async def rerank(self, query: str, matches: List[VectorMatch]) -> List[VectorMatch]:
        scored = await asyncio.gather(*(self._score(query, match) for match in matches))
        LOGGER.debug(f"Reranked {len(scored)} matches for query {query[:60]!r}")
        return sorted(scored, key=lambda match: match.score, reverse=True)
