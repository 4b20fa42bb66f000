"""Archive search: embed the query, scan the store, optionally rerank."""

from __future__ import annotations

import logging
from typing import List, Optional

from langchain_core.embeddings import Embeddings

from agentura.utils.error_handler import ModelInvocationError

from .reranker import Reranker
from .vector_store import VectorMatch, VectorStore

LOGGER = logging.getLogger(__name__)


class ArchiveRetriever:
    def __init__(
        self,
        embeddings: Embeddings,
        store: VectorStore,
        *,
        reranker: Optional[Reranker] = None,
        top_k: int = 5,
    ):
        self._embeddings = embeddings
        self.store = store
        self._reranker = reranker
        self.top_k = top_k

    async def search(self, query: str, *, source: Optional[str] = None, top_k: Optional[int] = None) -> List[VectorMatch]:
        vector = await self._embeddings.aembed_query(query)
        matches = self.store.query(vector, top_k or self.top_k, source)
        LOGGER.info(f"Archive search {query[:60]!r}: {len(matches)} matches")
        if not matches or self._reranker is None:
            return matches
        try:
            return await self._reranker.rerank(query, matches)
        except ModelInvocationError as error:
            LOGGER.warning(f"Reranking failed, keeping similarity order: {error}")
            return matches


def format_matches(matches: List[VectorMatch]) -> str:
    """Render matches as a tool result block."""

    if not matches:
        return "No relevant documents were found in the archive."
    lines = ["Relevant archive passages:"]
    for index, match in enumerate(matches, start=1):
        lines.append(f"[{index}] ({match.source}, score {match.score:.2f}) {match.text}")
    return "\n".join(lines)
