"""Local document archive and reflexion memory."""

from .ingest import ingest_text, split_paragraphs
from .reflexion_memory import ReflexionMemory
from .reranker import Reranker, parse_score
from .retriever import ArchiveRetriever, format_matches
from .vector_store import InMemoryVectorStore, VectorMatch, VectorStore, content_key, cosine_scores

__all__ = [
    "ArchiveRetriever",
    "InMemoryVectorStore",
    "ReflexionMemory",
    "Reranker",
    "VectorMatch",
    "VectorStore",
    "content_key",
    "cosine_scores",
    "format_matches",
    "ingest_text",
    "parse_score",
    "split_paragraphs",
]
