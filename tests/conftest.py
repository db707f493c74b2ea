"""
Pytest configuration and fixtures for legal chat tests.

Provides shared fixtures for:
- Mock Redis client (fakeredis)
- In-memory fakes for the usage, knowledge and generation collaborators
- Common test data (knowledge sources, retrieval results)
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from legalchat.conversations.memory import InMemoryConversationRepository
from legalchat.conversations.store import ConversationStore
from legalchat.guards.usage_guard import UsageGuard
from legalchat.llm.gateway import GenerationGateway
from legalchat.orchestrators.chat_orchestrator import ChatOrchestrator
from legalchat.retrieval.retriever import KnowledgeRetriever
from legalchat.schemas.chat import (
    GenerationResult,
    KnowledgeSource,
    RetrievalResult,
    TokenUsage,
    UsageDecision,
)


def make_result(
    source_id: str,
    score: float,
    title: Optional[str] = None,
    source_type: str = "act",
    authority: Optional[str] = "Parliament of Kenya",
    url: Optional[str] = None,
    excerpt: str = "An employer shall give notice of termination.",
) -> RetrievalResult:
    return RetrievalResult(
        source=KnowledgeSource(
            id=source_id,
            title=title or f"Source {source_id}",
            source_type=source_type,
            authority=authority,
            document_url=url,
            legal_area=["employment_law"],
            jurisdiction="Kenya",
        ),
        relevance_score=score,
        matched_content=excerpt,
    )


class FakeUsageService:
    """Usage service that allows everything unless told otherwise."""

    def __init__(self, decision: Optional[UsageDecision] = None, error: Optional[Exception] = None):
        self.decision = decision or UsageDecision(allowed=True)
        self.error = error
        self.checks: List[tuple] = []
        self.recorded: List[tuple] = []

    async def check_limit(self, user_id: str, estimated_tokens: int) -> UsageDecision:
        self.checks.append((user_id, estimated_tokens))
        if self.error:
            raise self.error
        return self.decision

    async def record_usage(self, user_id: str, tokens: int) -> None:
        self.recorded.append((user_id, tokens))


class FakeKnowledgeStore:
    """Knowledge store returning canned results, or failing/hanging on demand."""

    def __init__(
        self,
        results: Optional[List[RetrievalResult]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.results = results or []
        self.error = error
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def search(self, query, user_id, legal_areas, jurisdiction, relevance_threshold, max_results):
        self.calls.append(
            {
                "query": query,
                "user_id": user_id,
                "legal_areas": legal_areas,
                "jurisdiction": jurisdiction,
                "relevance_threshold": relevance_threshold,
                "max_results": max_results,
            }
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.results)


class FakeGenerationService:
    """Generation service with a scripted answer and a session ledger."""

    def __init__(
        self,
        content: str = "Under the Employment Act, notice is required.",
        total_tokens: int = 120,
        confidence: Optional[float] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.content = content
        self.total_tokens = total_tokens
        self.confidence = confidence
        self.error = error
        self.delay = delay
        self.opened: List[str] = []
        self.closed: List[str] = []
        self.prompts: List[str] = []
        self.contexts: List[Dict[str, Any]] = []

    async def open_session(self, user_id: str, kind: str, meta: Dict[str, Any]) -> str:
        session_id = f"session-{len(self.opened) + 1}"
        self.opened.append(session_id)
        return session_id

    async def generate(self, prompt, user_id, session_id, context) -> GenerationResult:
        self.prompts.append(prompt)
        self.contexts.append(context)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return GenerationResult(
            content=self.content,
            tokens_used=TokenUsage(prompt=self.total_tokens // 2, completion=self.total_tokens // 2, total=self.total_tokens),
            model="gpt-4",
            confidence_score=self.confidence,
            processing_time_ms=42,
        )

    async def close_session(self, session_id: str) -> None:
        self.closed.append(session_id)


@pytest.fixture
async def redis_client():
    """
    Provide fakeredis client for testing.

    This avoids requiring actual Redis server during tests.
    """
    from fakeredis import aioredis as fakeredis

    client = fakeredis.FakeRedis(decode_responses=True)

    yield client

    await client.flushdb()
    await client.aclose()


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("LEGALCHAT_APP_ENV", "test")


@pytest.fixture
def usage_service():
    return FakeUsageService()


@pytest.fixture
def knowledge_store():
    return FakeKnowledgeStore(
        results=[
            make_result("emp-act", 0.92, title="Employment Act, 2007", url="https://kenyalaw.org/emp-act"),
            make_result("constitution", 0.78, title="Constitution of Kenya, 2010", source_type="constitution"),
        ]
    )


@pytest.fixture
def generation_service():
    return FakeGenerationService()


@pytest.fixture
def repository():
    return InMemoryConversationRepository()


@pytest.fixture
def store(repository):
    return ConversationStore(repository)


@pytest.fixture
def orchestrator(usage_service, store, knowledge_store, generation_service):
    return ChatOrchestrator(
        usage_guard=UsageGuard(usage_service, timeout_seconds=1.0),
        store=store,
        retriever=KnowledgeRetriever(knowledge_store, timeout_seconds=0.5),
        gateway=GenerationGateway(generation_service, timeout_seconds=1.0),
    )


@pytest.fixture
def result_factory():
    """Build ``RetrievalResult`` objects with sensible defaults."""
    return make_result
