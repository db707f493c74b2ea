"""Pydantic models for Firestore collections.

These models define the structure of the documents stored in Firestore
and are used for data validation and serialization.
"""
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FirestoreConversation(BaseModel):
    """A chat conversation document in ``chat_conversations``."""
    id: str = Field(..., description="Unique identifier for the conversation.")
    user_id: str = Field(..., description="UID of the user who owns the conversation.")
    conversation_type: Literal["general", "legal_advice", "document_analysis"] = Field("general")
    title: str | None = Field(None, description="A short, descriptive title for the conversation.")
    total_tokens_used: int = Field(0, ge=0, description="Sum of tokens of all messages.")
    legal_context: dict[str, Any] | None = Field(None, description="Derived legal-area descriptor.")
    conversation_summary: str | None = Field(None, description="Rolling summary for long conversations.")
    knowledge_sources: list[str] = Field(default_factory=list, description="Knowledge source ids used.")
    message_count: int = Field(0, ge=0, description="Number of messages; next message sequence.")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class FirestoreMessage(BaseModel):
    """A single message in ``chat_conversations/{id}/messages``."""
    id: str = Field(..., description="Unique identifier for the message.")
    conversation_id: str = Field(..., description="The conversation this message belongs to.")
    role: Literal["user", "assistant"] = Field(..., description="The role of the message sender.")
    content: str = Field(..., description="The text content of the message.")
    metadata: dict[str, Any] | None = Field(None, description="Generation provenance for assistant messages.")
    sequence: int = Field(..., ge=0, description="Insertion index within the conversation.")
    created_at: datetime = Field(default_factory=_utcnow)
