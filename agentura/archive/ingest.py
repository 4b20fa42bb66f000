"""Document ingestion into the vector store."""

from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional

from langchain_core.embeddings import Embeddings

from .vector_store import VectorStore, content_key

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


def split_paragraphs(text: str, min_chars: int = 20) -> List[str]:
    """Split on blank lines, dropping fragments of ``min_chars`` or fewer."""

    chunks = [chunk.strip() for chunk in _PARAGRAPH_BREAK.split(text)]
    return [chunk for chunk in chunks if len(chunk) > min_chars]


async def ingest_text(
    text: str,
    source: str,
    *,
    embeddings: Embeddings,
    store: VectorStore,
    min_chars: int = 20,
    on_progress: Optional[ProgressCallback] = None,
) -> int:
    """Embed and store each paragraph of ``text`` under ``source``.

    Chunk ids derive from source and content, so ingesting the same document
    twice leaves the store unchanged.

    Returns:
        Number of chunks written.
    """
    chunks = split_paragraphs(text, min_chars)
    for index, chunk in enumerate(chunks, start=1):
        vector = await embeddings.aembed_query(chunk)
        store.upsert(content_key(source, chunk), chunk, vector, source)
        if on_progress is not None:
            on_progress(index, len(chunks))
    LOGGER.info(f"Ingested {len(chunks)} chunks from {source}")
    return len(chunks)
