"""Tests for the OpenAI generation adapter."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from legalchat.llm.openai_service import OpenAIGenerationService, calculate_cost


@pytest.fixture
def mock_openai_client():
    completion = MagicMock()
    completion.choices = [MagicMock()]
    completion.choices[0].message.content = "Under Section 35 of the Employment Act..."
    completion.usage.prompt_tokens = 1000
    completion.usage.completion_tokens = 500
    completion.usage.total_tokens = 1500

    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion)
    return client


def test_calculate_cost():
    assert calculate_cost(1000, 1000, "gpt-4") == pytest.approx(0.09)
    assert calculate_cost(1000, 1000, "gpt-3.5-turbo") == pytest.approx(0.0035)
    assert calculate_cost(1000, 0, "unknown-model") == pytest.approx(0.03)


@pytest.mark.asyncio
async def test_generate_builds_messages_and_normalizes(mock_openai_client):
    service = OpenAIGenerationService(client=mock_openai_client, model="gpt-4")
    session_id = await service.open_session("user-1", "chat", {"conversation_id": "c1"})

    result = await service.generate(
        "What is the notice period?",
        "user-1",
        session_id,
        {
            "legal_area": "employment_law",
            "conversation_history": [{"role": "user", "content": "Earlier question"}],
        },
    )

    kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
    messages = kwargs["messages"]
    assert messages[0]["role"] == "system"
    assert "SPECIALIZATION: This conversation focuses on employment_law." in messages[0]["content"]
    assert messages[1] == {"role": "user", "content": "Earlier question"}
    assert messages[-1] == {"role": "user", "content": "What is the notice period?"}
    assert kwargs["max_tokens"] == 2000
    assert kwargs["temperature"] == 0.3

    assert result.tokens_used.total == 1500
    assert result.model == "gpt-4"
    assert result.confidence_score is None
    assert result.cost_usd == pytest.approx(0.06)
    assert service.sessions[session_id]["total_tokens"] == 1500


@pytest.mark.asyncio
async def test_close_session_removes_registry_entry(mock_openai_client):
    service = OpenAIGenerationService(client=mock_openai_client)
    session_id = await service.open_session("user-1", "chat", {})

    await service.close_session(session_id)
    await service.close_session(session_id)

    assert session_id not in service.sessions
