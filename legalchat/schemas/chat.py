"""Pydantic models for the legal chat core.

These models are shared by the orchestrator, its collaborators and the HTTP
adapter. Persistence adapters convert to and from them at their boundary.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


Role = Literal["user", "assistant"]
ConversationType = Literal["general", "legal_advice", "document_analysis"]
ComplexityLevel = Literal["simple", "medium", "complex"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class KnowledgeSource(BaseModel):
    """A passage owned by the external legal knowledge store."""

    id: str = Field(description="Source identifier")
    title: str = Field(description="Document title", examples=["Employment Act, 2007"])
    source_type: str = Field(description="constitution, act, case_law, regulation, precedent")
    authority: Optional[str] = Field(default=None, description="Issuing authority label")
    document_url: Optional[str] = Field(default=None, description="Document locator")
    content_text: Optional[str] = Field(default=None, description="Raw passage text")
    legal_area: List[str] = Field(default_factory=list)
    jurisdiction: Optional[str] = None


class RetrievalResult(BaseModel):
    """A knowledge source paired with its relevance for one query."""

    source: KnowledgeSource
    relevance_score: float = Field(ge=0.0, le=1.0)
    matched_content: str = ""


class Citation(BaseModel):
    citation: str
    relevance: float
    url: Optional[str] = None


class LegalContext(BaseModel):
    """Legal-area descriptor derived from the latest assistant answer."""

    primary_area: Optional[str] = None
    mentioned_areas: List[str] = Field(default_factory=list)
    complexity_level: ComplexityLevel = "simple"
    requires_lawyer: bool = False


class VectorSourceRef(BaseModel):
    source_id: str
    relevance: float


class MessageMetadata(BaseModel):
    """Generation provenance recorded on assistant messages."""

    tokens_used: int = 0
    model_used: Optional[str] = None
    vector_sources: List[VectorSourceRef] = Field(default_factory=list)
    confidence_score: Optional[float] = None
    legal_citations: List[Citation] = Field(default_factory=list)
    processing_time_ms: Optional[int] = None


class Message(BaseModel):
    """One turn half. Immutable once persisted."""

    id: str = Field(default_factory=new_id)
    conversation_id: str
    role: Role
    content: str
    metadata: Optional[MessageMetadata] = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def tokens_used(self) -> int:
        return self.metadata.tokens_used if self.metadata else 0


class Conversation(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    conversation_type: ConversationType = "general"
    title: Optional[str] = None
    total_tokens_used: int = Field(default=0, ge=0)
    legal_context: Optional[LegalContext] = None
    conversation_summary: Optional[str] = None
    knowledge_sources: List[str] = Field(default_factory=list)
    message_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ConversationWithMessages(BaseModel):
    conversation: Conversation
    messages: List[Message] = Field(default_factory=list)


class UsageDecision(BaseModel):
    """Allow/deny answer from the usage service."""

    allowed: bool
    reason: Optional[str] = None
    remaining_daily: Optional[int] = None
    remaining_monthly: Optional[int] = None


class TokenUsage(BaseModel):
    prompt: int = 0
    completion: int = 0
    total: int = 0


class GenerationResult(BaseModel):
    """Normalized output of the generation service."""

    content: str
    tokens_used: TokenUsage = Field(default_factory=TokenUsage)
    model: str
    confidence_score: Optional[float] = None
    processing_time_ms: int = 0
    cost_usd: float = 0.0


class ChatRequest(BaseModel):
    """Inbound chat message."""

    user_id: str = Field(..., min_length=1)
    message: str = Field(..., max_length=8000, description="User question")
    conversation_id: Optional[str] = None
    domain_hint: Optional[str] = Field(default=None, examples=["employment_law"])
    previous_context: Optional[str] = Field(
        default=None, description="Summary carried over from an earlier exchange"
    )

    @field_validator("message")
    @classmethod
    def message_must_not_be_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message must not be empty")
        return v


class ChatReply(BaseModel):
    message: str
    conversation_id: str
    sources_used: List[KnowledgeSource] = Field(default_factory=list)
    citations: List[Citation] = Field(default_factory=list)
    confidence_score: float
    follow_up_suggestions: List[str] = Field(default_factory=list)
    related_topics: List[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Standard error body for the HTTP adapter."""

    error: str = Field(description="Error code", examples=["QUOTA_EXCEEDED"])
    message: str = Field(description="Human-readable error message")
    details: Optional[Dict[str, Any]] = None
    request_id: Optional[str] = None


class ChatMessageBody(BaseModel):
    """HTTP body for sending a chat message; the user comes from the auth layer."""

    message: str = Field(..., max_length=8000, examples=["What are notice periods for termination in Kenya?"])
    conversation_id: Optional[str] = None
    domain_hint: Optional[str] = Field(default=None, examples=["employment_law"])
    previous_context: Optional[str] = None

    @field_validator("message")
    @classmethod
    def message_must_not_be_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message must not be empty")
        return v

    def to_request(self, user_id: str) -> ChatRequest:
        return ChatRequest(user_id=user_id, **self.model_dump())


class RenameConversationBody(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
