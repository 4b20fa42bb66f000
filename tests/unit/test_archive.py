"""Tests for the document archive, retrieval and reflexion memory."""

import numpy as np
import pytest
from pydantic import ValidationError

from agentura.archive import (
    ArchiveRetriever,
    InMemoryVectorStore,
    ReflexionMemory,
    Reranker,
    content_key,
    cosine_scores,
    format_matches,
    ingest_text,
    parse_score,
    split_paragraphs,
)

DOCUMENT = """The archive keeps paragraphs of personal notes for later questions.

short

Solar panels convert sunlight into electricity using photovoltaic cells.

Wind turbines convert the kinetic energy of moving air into electricity."""


class TestVectorStore:
    """In-memory similarity search"""

    def test_cosine_scores_handle_zero_vectors(self):
        scores = cosine_scores(np.array([[1.0, 0.0], [0.0, 0.0], [-1.0, 0.0]]), np.array([2.0, 0.0]))
        assert scores.tolist() == [1.0, 0.0, -1.0]

    def test_query_orders_by_similarity_and_filters_by_source(self):
        store = InMemoryVectorStore()
        store.upsert("a", "east", [1.0, 0.0], "compass")
        store.upsert("b", "north-east", [0.7, 0.7], "compass")
        store.upsert("c", "west", [-1.0, 0.0], "other")

        assert [match.id for match in store.query([1.0, 0.0], top_k=3)] == ["a", "b", "c"]
        assert [match.id for match in store.query([1.0, 0.0], top_k=3, source="other")] == ["c"]
        assert store.query([1.0, 0.0], top_k=0) == []

    def test_mismatched_dimensions_are_skipped(self):
        store = InMemoryVectorStore()
        store.upsert("a", "two dims", [1.0, 0.0], "s")
        store.upsert("b", "three dims", [1.0, 0.0, 0.0], "s")
        assert [match.id for match in store.query([1.0, 0.0], top_k=5)] == ["a"]

    def test_sources_can_be_listed_and_deleted(self):
        store = InMemoryVectorStore()
        store.upsert("a", "one", [1.0], "notes.md")
        store.upsert("b", "two", [1.0], "notes.md")
        store.upsert("c", "three", [1.0], "paper.pdf")

        assert store.list_sources() == {"notes.md": 2, "paper.pdf": 1}
        assert store.delete_by_source("notes.md") == 2
        assert store.delete_by_source("missing") == 0
        store.clear_all()
        assert len(store) == 0


class TestIngest:
    """Document ingestion"""

    def test_short_fragments_are_dropped(self):
        chunks = split_paragraphs(DOCUMENT)
        assert len(chunks) == 3
        assert "short" not in chunks

    @pytest.mark.asyncio
    async def test_reingesting_is_idempotent(self, embeddings):
        store = InMemoryVectorStore()
        progress = []

        assert await ingest_text(DOCUMENT, "energy.md", embeddings=embeddings, store=store, on_progress=lambda i, n: progress.append((i, n))) == 3
        await ingest_text(DOCUMENT, "energy.md", embeddings=embeddings, store=store)

        assert len(store) == 3
        assert progress == [(1, 3), (2, 3), (3, 3)]
        assert content_key("energy.md", "x") != content_key("other.md", "x")


class TestRetriever:
    """Archive search and reranking"""

    @pytest.mark.asyncio
    async def test_exact_passage_ranks_first(self, embeddings):
        store = InMemoryVectorStore()
        await ingest_text(DOCUMENT, "energy.md", embeddings=embeddings, store=store)
        passage = "Solar panels convert sunlight into electricity using photovoltaic cells."

        matches = await ArchiveRetriever(embeddings, store, top_k=2).search(passage)
        assert len(matches) == 2
        assert matches[0].text == passage
        assert matches[0].score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_reranker_reorders_matches(self, embeddings, gateway, service):
        store = InMemoryVectorStore()
        await ingest_text(DOCUMENT, "energy.md", embeddings=embeddings, store=store)

        def score(request):
            return "0.9" if "Wind" in request.turns[0].text else "Relevance: 0.1"

        service.add("Reranker", score)
        retriever = ArchiveRetriever(embeddings, store, reranker=Reranker(gateway))
        matches = await retriever.search("solar panels")

        assert matches[0].text.startswith("Wind")
        assert [match.score for match in matches[1:]] == [0.1, 0.1]

    @pytest.mark.asyncio
    async def test_failed_rerank_keeps_similarity_order(self, embeddings, gateway, service):
        store = InMemoryVectorStore()
        await ingest_text(DOCUMENT, "energy.md", embeddings=embeddings, store=store)
        service.add("Reranker", ValueError("401 invalid_api_key"))
        plain = await ArchiveRetriever(embeddings, store).search("wind")

        reranked = await ArchiveRetriever(embeddings, store, reranker=Reranker(gateway)).search("wind")
        assert [match.id for match in reranked] == [match.id for match in plain]

    def test_parse_score(self):
        assert parse_score("Score: 0.85") == 0.85
        assert parse_score("7") == 1.0
        assert parse_score("no idea") == 0.0

    def test_format_matches(self):
        assert "No relevant documents" in format_matches([])


class TestReflexionMemory:
    """Memory of failed attempts"""

    @pytest.mark.asyncio
    async def test_similar_goals_recall_entries(self, embeddings):
        memory = ReflexionMemory(embeddings, threshold=0.9)
        await memory.record("plot a sine wave", "NameError: np", "numpy was not imported", fix="import numpy as np")

        lessons = await memory.recall("plot a sine wave")
        assert [entry.fix for entry in lessons] == ["import numpy as np"]
        assert await memory.recall("write a haiku about autumn") == []

    @pytest.mark.asyncio
    async def test_entries_are_immutable_and_clearable(self, embeddings):
        memory = ReflexionMemory(embeddings)
        entry = await memory.record("goal", "output", "critique")

        with pytest.raises(ValidationError):
            entry.fix = "changed"
        memory.clear()
        assert memory.entries == []
        assert await memory.recall("goal") == []
