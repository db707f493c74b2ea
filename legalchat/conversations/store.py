"""Conversation and message bookkeeping for the chat core.

``ConversationStore`` owns the business rules (ownership checks, classification,
ordering contract, token accounting, rolling summaries) and delegates raw I/O to an
injected ``ConversationRepository``. Repository errors surface as
``PersistenceFailure``; lookups that fail ownership surface as
``ConversationNotFound`` / ``ConversationForbidden``.
"""

from __future__ import annotations

from typing import List, Optional

import structlog

from legalchat.errors import (
    ConversationForbidden,
    ConversationNotFound,
    PersistenceFailure,
)
from legalchat.ports import ConversationRepository
from legalchat.schemas.chat import (
    Conversation,
    ConversationWithMessages,
    LegalContext,
    Message,
    MessageMetadata,
    Role,
)

logger = structlog.get_logger(__name__)


def build_rolling_summary(messages: List[Message], legal_context: Optional[LegalContext]) -> str:
    """Short deterministic summary of a conversation window."""
    summary = f"Legal consultation covering topics discussed in {len(messages)} messages."
    if legal_context is not None:
        areas = list(legal_context.mentioned_areas)
        if legal_context.primary_area and legal_context.primary_area not in areas:
            areas.insert(0, legal_context.primary_area)
        if areas:
            summary += f" Areas: {', '.join(areas)}."
        if legal_context.requires_lawyer:
            summary += " A lawyer referral was recommended."
    return summary


class ConversationStore:
    """
    Creates, loads and updates conversations on behalf of the orchestrator.

    Usage:
        store = ConversationStore(InMemoryConversationRepository())
        conversation = await store.resolve_or_create(None, "user-1", "employment_law")
        await store.append_message(conversation.id, "user", "What is...?")
        history = await store.recent_messages(conversation.id, limit=5)
    """

    def __init__(
        self,
        repository: ConversationRepository,
        summary_min_messages: int = 5,
        summary_window: int = 20,
    ):
        self.repository = repository
        self.summary_min_messages = summary_min_messages
        self.summary_window = summary_window

    async def _load_owned(self, conversation_id: str, user_id: str) -> Conversation:
        try:
            conversation = await self.repository.get_conversation(conversation_id)
        except Exception as e:
            raise PersistenceFailure(
                "Failed to load conversation", details={"conversation_id": conversation_id, "error": str(e)}
            ) from e

        if conversation is None:
            raise ConversationNotFound(
                "Conversation not found", details={"conversation_id": conversation_id}
            )
        if conversation.user_id != user_id:
            logger.warning(
                "Conversation ownership mismatch",
                conversation_id=conversation_id,
                user_id=user_id,
            )
            raise ConversationForbidden(
                "Conversation belongs to another user", details={"conversation_id": conversation_id}
            )
        return conversation

    async def resolve_or_create(
        self,
        conversation_id: Optional[str],
        user_id: str,
        domain_hint: Optional[str] = None,
    ) -> Conversation:
        """Load an owned conversation, or start a new one classified by the hint."""
        if conversation_id:
            return await self._load_owned(conversation_id, user_id)

        conversation = Conversation(
            user_id=user_id,
            conversation_type="legal_advice" if domain_hint else "general",
            legal_context=LegalContext(primary_area=domain_hint) if domain_hint else None,
        )
        try:
            created = await self.repository.create_conversation(conversation)
        except Exception as e:
            raise PersistenceFailure("Failed to create conversation", details={"error": str(e)}) from e

        logger.info(
            "Conversation created",
            conversation_id=created.id,
            user_id=user_id,
            conversation_type=created.conversation_type,
        )
        return created

    async def append_message(
        self,
        conversation_id: str,
        role: Role,
        content: str,
        metadata: Optional[MessageMetadata] = None,
    ) -> Message:
        if role == "assistant" and metadata is None:
            raise ValueError("Assistant messages must carry generation metadata")

        message = Message(
            conversation_id=conversation_id,
            role=role,
            content=content,
            metadata=metadata,
        )
        try:
            stored = await self.repository.add_message(message)
        except Exception as e:
            raise PersistenceFailure(
                "Failed to save message",
                details={"conversation_id": conversation_id, "role": role, "error": str(e)},
            ) from e

        logger.debug(
            "Message saved",
            conversation_id=conversation_id,
            role=role,
            content_length=len(content),
        )
        return stored

    async def recent_messages(self, conversation_id: str, limit: int) -> List[Message]:
        """
        Most recent ``limit`` messages, oldest first.

        The window start is computed from the message count and read in
        ascending order; nothing is reversed after the fact.
        """
        if limit <= 0:
            return []
        try:
            total = await self.repository.count_messages(conversation_id)
            offset = max(0, total - limit)
            return await self.repository.list_messages(conversation_id, offset=offset, limit=limit)
        except Exception as e:
            raise PersistenceFailure(
                "Failed to load recent messages",
                details={"conversation_id": conversation_id, "error": str(e)},
            ) from e

    async def update_after_turn(
        self,
        conversation_id: str,
        token_delta: int,
        source_ids: List[str],
        derived_context: LegalContext,
    ) -> None:
        if token_delta < 0:
            raise ValueError("token_delta must be non-negative")
        try:
            await self.repository.apply_turn_update(
                conversation_id,
                token_delta=token_delta,
                source_ids=list(dict.fromkeys(source_ids)),
                legal_context=derived_context,
            )
        except Exception as e:
            raise PersistenceFailure(
                "Failed to update conversation after turn",
                details={"conversation_id": conversation_id, "error": str(e)},
            ) from e

    async def record_assistant_turn(
        self,
        conversation_id: str,
        content: str,
        metadata: MessageMetadata,
        source_ids: List[str],
        derived_context: LegalContext,
    ) -> Message:
        """
        Store the assistant answer together with the conversation totals.

        The repository applies both in one atomic write, so the token total always
        equals the sum over stored messages, even when the write fails.
        """
        message = Message(
            conversation_id=conversation_id,
            role="assistant",
            content=content,
            metadata=metadata,
        )
        try:
            stored = await self.repository.append_assistant_turn(
                message,
                token_delta=metadata.tokens_used,
                source_ids=list(dict.fromkeys(source_ids)),
                legal_context=derived_context,
            )
        except Exception as e:
            raise PersistenceFailure(
                "Failed to record assistant turn",
                details={"conversation_id": conversation_id, "error": str(e)},
            ) from e

        logger.debug(
            "Assistant turn recorded",
            conversation_id=conversation_id,
            tokens_used=metadata.tokens_used,
            content_length=len(content),
        )
        return stored

    async def summarize(self, conversation_id: str) -> str:
        """Store a rolling summary once the conversation is long enough.

        Returns the stored summary, or an empty string below the threshold.
        """
        try:
            total = await self.repository.count_messages(conversation_id)
            if total < self.summary_min_messages:
                return ""
            conversation = await self.repository.get_conversation(conversation_id)
            window = await self.repository.list_messages(
                conversation_id,
                offset=max(0, total - self.summary_window),
                limit=self.summary_window,
            )
            summary = build_rolling_summary(
                window, conversation.legal_context if conversation else None
            )
            await self.repository.set_summary(conversation_id, summary)
        except Exception as e:
            raise PersistenceFailure(
                "Failed to summarize conversation",
                details={"conversation_id": conversation_id, "error": str(e)},
            ) from e

        logger.info("Conversation summarized", conversation_id=conversation_id, message_count=total)
        return summary

    async def get_conversation(self, conversation_id: str, user_id: str) -> ConversationWithMessages:
        conversation = await self._load_owned(conversation_id, user_id)
        try:
            messages = await self.repository.list_messages(conversation_id)
        except Exception as e:
            raise PersistenceFailure("Failed to load messages", details={"error": str(e)}) from e
        return ConversationWithMessages(conversation=conversation, messages=messages)

    async def list_conversations(self, user_id: str, limit: int = 20) -> List[Conversation]:
        try:
            return await self.repository.list_conversations(user_id, limit)
        except Exception as e:
            raise PersistenceFailure("Failed to list conversations", details={"error": str(e)}) from e

    async def delete_conversation(self, conversation_id: str, user_id: str) -> None:
        """Explicit user deletion; never triggered implicitly."""
        await self._load_owned(conversation_id, user_id)
        try:
            await self.repository.delete_conversation(conversation_id)
        except Exception as e:
            raise PersistenceFailure("Failed to delete conversation", details={"error": str(e)}) from e
        logger.info("Conversation deleted", conversation_id=conversation_id, user_id=user_id)

    async def rename_conversation(self, conversation_id: str, user_id: str, title: str) -> None:
        await self._load_owned(conversation_id, user_id)
        try:
            await self.repository.update_title(conversation_id, title.strip())
        except Exception as e:
            raise PersistenceFailure("Failed to rename conversation", details={"error": str(e)}) from e
