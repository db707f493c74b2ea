"""Tests for knowledge retrieval filtering and failure handling."""

import pytest

from legalchat.errors import RetrievalFailure
from legalchat.retrieval.retriever import KnowledgeRetriever, filter_and_rank


class TestFilterAndRank:
    def test_threshold_is_exclusive(self, result_factory):
        results = [result_factory("a", 0.7), result_factory("b", 0.71)]
        assert [r.source.id for r in filter_and_rank(results, 0.7, 5)] == ["b"]

    def test_sorted_descending_and_stable(self, result_factory):
        results = [
            result_factory("a", 0.8),
            result_factory("b", 0.95),
            result_factory("c", 0.8),
        ]
        assert [r.source.id for r in filter_and_rank(results, 0.7, 5)] == ["b", "a", "c"]

    def test_truncated_after_filtering(self, result_factory):
        results = [result_factory(str(i), 0.75 + i / 100) for i in range(10)]
        ranked = filter_and_rank(results, 0.7, 3)
        assert [r.source.id for r in ranked] == ["9", "8", "7"]


class TestKnowledgeRetriever:
    @pytest.mark.asyncio
    async def test_domain_filter_becomes_legal_areas(self, knowledge_store):
        retriever = KnowledgeRetriever(knowledge_store)

        await retriever.search("notice periods", "user-1", domain_filter="employment_law")

        call = knowledge_store.calls[0]
        assert call["legal_areas"] == ["employment_law"]
        assert call["jurisdiction"] == "Kenya"
        assert call["relevance_threshold"] == 0.7
        assert call["max_results"] == 5

    @pytest.mark.asyncio
    async def test_no_domain_filter(self, knowledge_store):
        await KnowledgeRetriever(knowledge_store).search("q", "user-1")
        assert knowledge_store.calls[0]["legal_areas"] is None

    @pytest.mark.asyncio
    async def test_store_results_below_threshold_dropped(self, knowledge_store, result_factory):
        knowledge_store.results = [result_factory("low", 0.65), result_factory("high", 0.9)]

        results = await KnowledgeRetriever(knowledge_store).search("q", "user-1")

        assert [r.source.id for r in results] == ["high"]

    @pytest.mark.asyncio
    async def test_store_error_raises_retrieval_failure(self, knowledge_store):
        knowledge_store.error = RuntimeError("index offline")

        with pytest.raises(RetrievalFailure) as exc_info:
            await KnowledgeRetriever(knowledge_store).search("q", "user-1")

        assert exc_info.value.timed_out is False

    @pytest.mark.asyncio
    async def test_timeout_flagged(self, knowledge_store):
        knowledge_store.delay = 1.0

        with pytest.raises(RetrievalFailure) as exc_info:
            await KnowledgeRetriever(knowledge_store, timeout_seconds=0.01).search("q", "user-1")

        assert exc_info.value.timed_out is True
