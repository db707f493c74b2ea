"""In-process conversation repository.

Backs the ``memory`` storage backend in development and the test suite. Objects
are copied on the way in and out so callers can never mutate stored state.
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

from legalchat.schemas.chat import Conversation, LegalContext, Message, utcnow


class InMemoryConversationRepository:
    """Dict-backed ``ConversationRepository``."""

    def __init__(self):
        self._conversations: Dict[str, Conversation] = {}
        self._messages: Dict[str, List[Message]] = {}
        self._lock = asyncio.Lock()

    async def create_conversation(self, conversation: Conversation) -> Conversation:
        async with self._lock:
            self._conversations[conversation.id] = conversation.model_copy(deep=True)
            self._messages[conversation.id] = []
        return conversation.model_copy(deep=True)

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        conversation = self._conversations.get(conversation_id)
        return conversation.model_copy(deep=True) if conversation else None

    async def list_conversations(self, user_id: str, limit: int) -> List[Conversation]:
        owned = [c for c in self._conversations.values() if c.user_id == user_id]
        owned.sort(key=lambda c: c.updated_at, reverse=True)
        return [c.model_copy(deep=True) for c in owned[:limit]]

    async def delete_conversation(self, conversation_id: str) -> None:
        async with self._lock:
            self._conversations.pop(conversation_id, None)
            self._messages.pop(conversation_id, None)

    async def update_title(self, conversation_id: str, title: str) -> None:
        async with self._lock:
            conversation = self._require(conversation_id)
            conversation.title = title
            conversation.updated_at = utcnow()

    async def add_message(self, message: Message) -> Message:
        async with self._lock:
            conversation = self._require(message.conversation_id)
            self._messages[message.conversation_id].append(message.model_copy(deep=True))
            conversation.message_count += 1
            conversation.updated_at = utcnow()
        return message.model_copy(deep=True)

    async def count_messages(self, conversation_id: str) -> int:
        return len(self._messages.get(conversation_id, []))

    async def list_messages(
        self, conversation_id: str, offset: int = 0, limit: Optional[int] = None
    ) -> List[Message]:
        messages = self._messages.get(conversation_id, [])
        end = None if limit is None else offset + limit
        return [m.model_copy(deep=True) for m in messages[offset:end]]

    async def apply_turn_update(
        self,
        conversation_id: str,
        token_delta: int,
        source_ids: List[str],
        legal_context: LegalContext,
    ) -> None:
        async with self._lock:
            conversation = self._require(conversation_id)
            self._apply_turn_totals(conversation, token_delta, source_ids, legal_context)

    async def append_assistant_turn(
        self,
        message: Message,
        token_delta: int,
        source_ids: List[str],
        legal_context: LegalContext,
    ) -> Message:
        async with self._lock:
            # Staged on a copy and committed only once every step succeeded.
            updated = self._require(message.conversation_id).model_copy(deep=True)
            updated.message_count += 1
            self._apply_turn_totals(updated, token_delta, source_ids, legal_context)
            self._messages[message.conversation_id].append(message.model_copy(deep=True))
            self._conversations[message.conversation_id] = updated
        return message.model_copy(deep=True)

    @staticmethod
    def _apply_turn_totals(
        conversation: Conversation,
        token_delta: int,
        source_ids: List[str],
        legal_context: LegalContext,
    ) -> None:
        conversation.total_tokens_used += token_delta
        for source_id in source_ids:
            if source_id not in conversation.knowledge_sources:
                conversation.knowledge_sources.append(source_id)
        conversation.legal_context = legal_context.model_copy(deep=True)
        conversation.updated_at = utcnow()

    async def set_summary(self, conversation_id: str, summary: str) -> None:
        async with self._lock:
            conversation = self._require(conversation_id)
            conversation.conversation_summary = summary

    def _require(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise KeyError(f"Unknown conversation {conversation_id}")
        return conversation
