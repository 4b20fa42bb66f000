"""Similarity-searchable memory of failed attempts."""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np
from langchain_core.embeddings import Embeddings

from agentura.session.models import ReflexionEntry

from .vector_store import cosine_scores

LOGGER = logging.getLogger(__name__)


class ReflexionMemory:
    """Append-only store of ``ReflexionEntry`` records.

    Entries are never modified; ``clear`` is the only way to remove them.
    """

    def __init__(self, embeddings: Embeddings, *, threshold: float = 0.75, top_k: int = 3):
        self._embeddings = embeddings
        self.threshold = threshold
        self.top_k = top_k
        self._entries: List[ReflexionEntry] = []

    @property
    def entries(self) -> List[ReflexionEntry]:
        return list(self._entries)

    async def record(self, prompt: str, failed_output: str, critique: str, fix: Optional[str] = None) -> ReflexionEntry:
        embedding = await self._embeddings.aembed_query(prompt)
        entry = ReflexionEntry(
            embedding=list(embedding),
            prompt=prompt,
            failed_output=failed_output,
            critique=critique,
            fix=fix,
        )
        self._entries.append(entry)
        LOGGER.info(f"Recorded reflexion entry {entry.id} (fix known: {fix is not None})")
        return entry

    async def recall(self, goal: str) -> List[ReflexionEntry]:
        """Entries whose prompt is similar to ``goal``, most similar first."""

        if not self._entries:
            return []
        vector = np.asarray(await self._embeddings.aembed_query(goal), dtype=float)
        candidates = [entry for entry in self._entries if len(entry.embedding) == vector.shape[0]]
        if not candidates:
            return []
        scores = cosine_scores(np.asarray([entry.embedding for entry in candidates], dtype=float), vector)
        ranked = sorted(
            (pair for pair in zip(scores.tolist(), candidates) if pair[0] >= self.threshold),
            key=lambda pair: pair[0],
            reverse=True,
        )
        return [entry for _, entry in ranked[: self.top_k]]

    def clear(self) -> None:
        self._entries.clear()
