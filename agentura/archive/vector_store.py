"""Vector similarity store interface and an in-memory implementation.

``InMemoryVectorStore`` scans every record per query. That is fine for a
personal archive of a few thousand chunks; larger corpora should plug an
indexed store in behind the same protocol.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence

import numpy as np

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class VectorRecord:
    id: str
    text: str
    embedding: np.ndarray
    source: str


@dataclass(frozen=True)
class VectorMatch:
    id: str
    text: str
    source: str
    score: float


def content_key(source: str, text: str) -> str:
    """Deterministic id for a chunk so re-ingesting the same content is a no-op."""
    return hashlib.sha256(f"{source}\x00{text}".encode("utf-8")).hexdigest()


class VectorStore(Protocol):
    def upsert(self, id: str, text: str, embedding: Sequence[float], source: str) -> None:
        ...

    def query(self, embedding: Sequence[float], top_k: int, source: Optional[str] = None) -> List[VectorMatch]:
        ...

    def list_sources(self) -> Dict[str, int]:
        ...

    def delete_by_source(self, source: str) -> int:
        ...

    def clear_all(self) -> None:
        ...


def cosine_scores(matrix: np.ndarray, vector: np.ndarray) -> np.ndarray:
    """Cosine similarity of each row of ``matrix`` with ``vector``; zero-norm rows score 0."""

    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(vector)
    dots = matrix @ vector
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(norms > 0, dots / norms, 0.0)
    return scores


class InMemoryVectorStore:
    """Brute-force cosine similarity over records held in memory."""

    def __init__(self) -> None:
        self._records: Dict[str, VectorRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def upsert(self, id: str, text: str, embedding: Sequence[float], source: str) -> None:
        self._records[id] = VectorRecord(
            id=id,
            text=text,
            embedding=np.asarray(embedding, dtype=float),
            source=source,
        )

    def query(self, embedding: Sequence[float], top_k: int, source: Optional[str] = None) -> List[VectorMatch]:
        records = [
            record for record in self._records.values()
            if source is None or record.source == source
        ]
        if not records or top_k <= 0:
            return []

        vector = np.asarray(embedding, dtype=float)
        dims = {record.embedding.shape[0] for record in records}
        if dims != {vector.shape[0]}:
            LOGGER.warning(f"Embedding dimension mismatch: query {vector.shape[0]}, store {sorted(dims)}")
            records = [record for record in records if record.embedding.shape[0] == vector.shape[0]]
            if not records:
                return []

        scores = cosine_scores(np.vstack([record.embedding for record in records]), vector)
        order = np.argsort(-scores, kind="stable")[:top_k]
        return [
            VectorMatch(id=records[i].id, text=records[i].text, source=records[i].source, score=float(scores[i]))
            for i in order
        ]

    def list_sources(self) -> Dict[str, int]:
        """Chunk count per source tag."""

        summary: Dict[str, int] = {}
        for record in self._records.values():
            summary[record.source] = summary.get(record.source, 0) + 1
        return summary

    def delete_by_source(self, source: str) -> int:
        doomed = [key for key, record in self._records.items() if record.source == source]
        for key in doomed:
            del self._records[key]
        return len(doomed)

    def clear_all(self) -> None:
        self._records.clear()
