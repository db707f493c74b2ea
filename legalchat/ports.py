"""Collaborator interfaces consumed by the chat core.

Concrete adapters live in ``libs`` (Firestore, Redis) and in the ``retrieval`` /
``llm`` packages (HTTP knowledge service, OpenAI). Tests substitute in-memory fakes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from legalchat.schemas.chat import (
    Conversation,
    GenerationResult,
    LegalContext,
    Message,
    RetrievalResult,
    UsageDecision,
)


class UsageService(Protocol):
    async def check_limit(self, user_id: str, estimated_tokens: int) -> UsageDecision:
        ...

    async def record_usage(self, user_id: str, tokens: int) -> None:
        ...


class ConversationRepository(Protocol):
    """Async CRUD over conversations and their messages."""

    async def create_conversation(self, conversation: Conversation) -> Conversation:
        ...

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        ...

    async def list_conversations(self, user_id: str, limit: int) -> List[Conversation]:
        ...

    async def delete_conversation(self, conversation_id: str) -> None:
        ...

    async def update_title(self, conversation_id: str, title: str) -> None:
        ...

    async def add_message(self, message: Message) -> Message:
        """Persist a message and bump the conversation's message count."""
        ...

    async def count_messages(self, conversation_id: str) -> int:
        ...

    async def list_messages(
        self, conversation_id: str, offset: int = 0, limit: Optional[int] = None
    ) -> List[Message]:
        """Messages in insertion order, starting at ``offset``."""
        ...

    async def apply_turn_update(
        self,
        conversation_id: str,
        token_delta: int,
        source_ids: List[str],
        legal_context: LegalContext,
    ) -> None:
        """Single atomic write: increment tokens, union sources, replace context."""
        ...

    async def append_assistant_turn(
        self,
        message: Message,
        token_delta: int,
        source_ids: List[str],
        legal_context: LegalContext,
    ) -> Message:
        """Store the assistant message and the turn update together, or neither."""
        ...

    async def set_summary(self, conversation_id: str, summary: str) -> None:
        ...


class KnowledgeStore(Protocol):
    async def search(
        self,
        query: str,
        user_id: str,
        legal_areas: Optional[List[str]],
        jurisdiction: str,
        relevance_threshold: float,
        max_results: int,
    ) -> List[RetrievalResult]:
        ...


class GenerationService(Protocol):
    async def open_session(self, user_id: str, kind: str, meta: Dict[str, Any]) -> str:
        ...

    async def generate(
        self, prompt: str, user_id: str, session_id: str, context: Dict[str, Any]
    ) -> GenerationResult:
        ...

    async def close_session(self, session_id: str) -> None:
        ...
