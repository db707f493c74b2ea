"""Tests for the HTTP knowledge service adapter."""

import json

import httpx
import pytest

from legalchat.retrieval.http_store import HttpKnowledgeStore


@pytest.fixture
def patch_transport(monkeypatch):
    """Route the adapter's httpx client through a MockTransport handler."""
    real_client = httpx.AsyncClient

    def install(handler):
        transport = httpx.MockTransport(handler)
        monkeypatch.setattr(
            httpx, "AsyncClient", lambda **kwargs: real_client(transport=transport, **kwargs)
        )

    return install


@pytest.mark.asyncio
async def test_search_posts_payload_and_parses_results(patch_transport):
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers.get("authorization")
        captured["payload"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "results": [
                    {
                        "document": {
                            "id": "emp-act",
                            "title": "Employment Act, 2007",
                            "source_type": "act",
                            "authority": "Parliament of Kenya",
                            "legal_areas": ["employment_law"],
                            "jurisdiction": "Kenya",
                            "metadata": {"url": "https://kenyalaw.org/emp-act"},
                        },
                        "relevance_score": 0.88,
                        "matched_content": "Termination notice...",
                    },
                    {"document": {}, "relevance_score": 0.99},
                ]
            },
        )

    patch_transport(handler)
    store = HttpKnowledgeStore("http://knowledge.local/", token="secret")

    results = await store.search(
        query="notice",
        user_id="user-1",
        legal_areas=["employment_law"],
        jurisdiction="Kenya",
        relevance_threshold=0.7,
        max_results=5,
    )

    assert captured["url"] == "http://knowledge.local/search"
    assert captured["auth"] == "Bearer secret"
    assert captured["payload"]["legal_areas"] == ["employment_law"]
    assert captured["payload"]["top_k"] == 5
    assert len(results) == 1
    assert results[0].source.id == "emp-act"
    assert results[0].source.document_url == "https://kenyalaw.org/emp-act"
    assert results[0].relevance_score == 0.88
    assert results[0].matched_content == "Termination notice..."


@pytest.mark.asyncio
async def test_client_error_is_not_retried(patch_transport):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(400, json={"error": "bad request"})

    patch_transport(handler)

    with pytest.raises(ValueError):
        await HttpKnowledgeStore("http://knowledge.local").search("q", "u", None, "Kenya", 0.7, 5)

    assert len(calls) == 1
