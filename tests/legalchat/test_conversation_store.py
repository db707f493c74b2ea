"""Tests for conversation bookkeeping over the in-memory repository."""

from unittest.mock import AsyncMock

import pytest

from legalchat.conversations.store import ConversationStore, build_rolling_summary
from legalchat.errors import ConversationForbidden, ConversationNotFound, PersistenceFailure
from legalchat.schemas.chat import Citation, LegalContext, MessageMetadata, VectorSourceRef


class TestResolveOrCreate:
    @pytest.mark.asyncio
    async def test_new_conversation_with_hint_is_legal_advice(self, store):
        conversation = await store.resolve_or_create(None, "user-1", "employment_law")

        assert conversation.conversation_type == "legal_advice"
        assert conversation.legal_context.primary_area == "employment_law"
        assert conversation.user_id == "user-1"

    @pytest.mark.asyncio
    async def test_new_conversation_without_hint_is_general(self, store):
        conversation = await store.resolve_or_create(None, "user-1")
        assert conversation.conversation_type == "general"
        assert conversation.legal_context is None

    @pytest.mark.asyncio
    async def test_existing_owned_conversation_loaded(self, store):
        created = await store.resolve_or_create(None, "user-1")
        loaded = await store.resolve_or_create(created.id, "user-1")
        assert loaded.id == created.id

    @pytest.mark.asyncio
    async def test_missing_conversation(self, store):
        with pytest.raises(ConversationNotFound):
            await store.resolve_or_create("missing", "user-1")

    @pytest.mark.asyncio
    async def test_other_users_conversation_forbidden(self, store):
        created = await store.resolve_or_create(None, "owner")
        with pytest.raises(ConversationForbidden):
            await store.resolve_or_create(created.id, "intruder")


class TestMessages:
    @pytest.mark.asyncio
    async def test_round_trip_preserves_metadata(self, store):
        conversation = await store.resolve_or_create(None, "user-1")
        metadata = MessageMetadata(
            tokens_used=321,
            model_used="gpt-4",
            vector_sources=[VectorSourceRef(source_id="emp-act", relevance=0.91)],
            confidence_score=0.85,
            legal_citations=[Citation(citation="Section 35", relevance=0.9)],
            processing_time_ms=1200,
        )

        appended = await store.append_message(conversation.id, "assistant", "Answer", metadata)
        loaded = await store.get_conversation(conversation.id, "user-1")

        assert loaded.messages[-1] == appended

    @pytest.mark.asyncio
    async def test_assistant_message_requires_metadata(self, store):
        conversation = await store.resolve_or_create(None, "user-1")
        with pytest.raises(ValueError):
            await store.append_message(conversation.id, "assistant", "Answer")

    @pytest.mark.asyncio
    async def test_recent_messages_oldest_first(self, store):
        conversation = await store.resolve_or_create(None, "user-1")
        for i in range(8):
            await store.append_message(conversation.id, "user", f"message {i}")

        recent = await store.recent_messages(conversation.id, limit=5)

        assert [m.content for m in recent] == [f"message {i}" for i in range(3, 8)]

    @pytest.mark.asyncio
    async def test_recent_messages_shorter_than_limit(self, store):
        conversation = await store.resolve_or_create(None, "user-1")
        await store.append_message(conversation.id, "user", "only one")
        recent = await store.recent_messages(conversation.id, limit=5)
        assert [m.content for m in recent] == ["only one"]

    @pytest.mark.asyncio
    async def test_repository_error_becomes_persistence_failure(self, repository):
        repository.add_message = AsyncMock(side_effect=RuntimeError("disk full"))
        store = ConversationStore(repository)
        conversation = await store.resolve_or_create(None, "user-1")

        with pytest.raises(PersistenceFailure):
            await store.append_message(conversation.id, "user", "hello")


class TestUpdateAfterTurn:
    @pytest.mark.asyncio
    async def test_tokens_sources_and_context(self, store):
        conversation = await store.resolve_or_create(None, "user-1")
        context = LegalContext(primary_area="employment_law", complexity_level="medium")

        await store.update_after_turn(conversation.id, 100, ["a", "b", "a"], context)
        await store.update_after_turn(conversation.id, 50, ["b", "c"], context)

        loaded = (await store.get_conversation(conversation.id, "user-1")).conversation
        assert loaded.total_tokens_used == 150
        assert loaded.knowledge_sources == ["a", "b", "c"]
        assert loaded.legal_context.complexity_level == "medium"

    @pytest.mark.asyncio
    async def test_negative_delta_rejected(self, store):
        conversation = await store.resolve_or_create(None, "user-1")
        with pytest.raises(ValueError):
            await store.update_after_turn(conversation.id, -1, [], LegalContext())


class TestRecordAssistantTurn:
    @pytest.mark.asyncio
    async def test_message_and_totals_written_together(self, store):
        conversation = await store.resolve_or_create(None, "user-1")
        await store.append_message(conversation.id, "user", "What notice applies?")

        await store.record_assistant_turn(
            conversation.id,
            "One month.",
            MessageMetadata(tokens_used=120, model_used="gpt-4"),
            ["emp-act", "emp-act"],
            LegalContext(primary_area="employment_law"),
        )

        loaded = await store.get_conversation(conversation.id, "user-1")
        assert [m.role for m in loaded.messages] == ["user", "assistant"]
        assert loaded.conversation.message_count == 2
        assert loaded.conversation.total_tokens_used == 120
        assert loaded.conversation.knowledge_sources == ["emp-act"]
        assert loaded.conversation.legal_context.primary_area == "employment_law"

    @pytest.mark.asyncio
    async def test_failed_totals_update_leaves_no_assistant_message(self, store, repository):
        conversation = await store.resolve_or_create(None, "user-1")
        await store.append_message(conversation.id, "user", "What notice applies?")

        def failing_totals(*args, **kwargs):
            raise RuntimeError("write conflict")

        repository._apply_turn_totals = failing_totals

        with pytest.raises(PersistenceFailure, match="Failed to record assistant turn"):
            await store.record_assistant_turn(
                conversation.id,
                "One month.",
                MessageMetadata(tokens_used=120),
                ["emp-act"],
                LegalContext(),
            )

        loaded = await store.get_conversation(conversation.id, "user-1")
        assert [m.role for m in loaded.messages] == ["user"]
        assert loaded.conversation.message_count == 1
        assert loaded.conversation.total_tokens_used == sum(m.tokens_used for m in loaded.messages) == 0


class TestSummarize:
    @pytest.mark.asyncio
    async def test_below_threshold_is_noop(self, store):
        conversation = await store.resolve_or_create(None, "user-1")
        await store.append_message(conversation.id, "user", "hi")

        assert await store.summarize(conversation.id) == ""
        loaded = (await store.get_conversation(conversation.id, "user-1")).conversation
        assert loaded.conversation_summary is None

    @pytest.mark.asyncio
    async def test_summary_stored_at_threshold(self, store):
        conversation = await store.resolve_or_create(None, "user-1", "employment_law")
        for i in range(5):
            await store.append_message(conversation.id, "user", f"m{i}")

        summary = await store.summarize(conversation.id)

        assert summary.startswith("Legal consultation covering topics discussed in 5 messages.")
        assert "employment_law" in summary
        loaded = (await store.get_conversation(conversation.id, "user-1")).conversation
        assert loaded.conversation_summary == summary

    def test_rolling_summary_mentions_lawyer_referral(self):
        context = LegalContext(mentioned_areas=["family law"], requires_lawyer=True)
        summary = build_rolling_summary([], context)
        assert summary == (
            "Legal consultation covering topics discussed in 0 messages."
            " Areas: family law. A lawyer referral was recommended."
        )


class TestUserOperations:
    @pytest.mark.asyncio
    async def test_list_conversations_scoped_to_user(self, store):
        await store.resolve_or_create(None, "user-1")
        await store.resolve_or_create(None, "user-1")
        await store.resolve_or_create(None, "user-2")

        assert len(await store.list_conversations("user-1")) == 2

    @pytest.mark.asyncio
    async def test_delete_requires_ownership(self, store):
        conversation = await store.resolve_or_create(None, "owner")

        with pytest.raises(ConversationForbidden):
            await store.delete_conversation(conversation.id, "intruder")

        await store.delete_conversation(conversation.id, "owner")
        with pytest.raises(ConversationNotFound):
            await store.get_conversation(conversation.id, "owner")

    @pytest.mark.asyncio
    async def test_rename(self, store):
        conversation = await store.resolve_or_create(None, "user-1")
        await store.rename_conversation(conversation.id, "user-1", "  Notice periods  ")
        loaded = (await store.get_conversation(conversation.id, "user-1")).conversation
        assert loaded.title == "Notice periods"
