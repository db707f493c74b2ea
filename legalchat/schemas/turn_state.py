"""State carried through one chat turn in the LangGraph orchestrator.

Each node returns a partial update; ``stage`` records the last stage that
completed so a failure can be attributed to the step that raised it.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from legalchat.schemas.chat import (
    ChatReply,
    ChatRequest,
    Citation,
    Conversation,
    GenerationResult,
    LegalContext,
    Message,
    RetrievalResult,
    UsageDecision,
)

ChatStage = Literal[
    "idle",
    "limit_checked",
    "conversation_resolved",
    "retrieved",
    "composed",
    "generated",
    "post_processed",
    "persisted",
    "replied",
    "failed",
]


class ChatTurnState(BaseModel):
    """Lifecycle of a single inbound chat message."""

    request_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    request: ChatRequest
    stage: ChatStage = "idle"

    usage_decision: Optional[UsageDecision] = None

    conversation: Optional[Conversation] = None
    prior_turns: List[Message] = Field(default_factory=list, description="Recent messages before this turn")
    prior_context_summary: Optional[str] = None
    user_message: Optional[Message] = None

    retrieval_results: List[RetrievalResult] = Field(default_factory=list)
    retrieval_failed: bool = False

    prompt: Optional[str] = None
    generation_context: Dict[str, Any] = Field(default_factory=dict)
    generation: Optional[GenerationResult] = None

    citations: List[Citation] = Field(default_factory=list)
    legal_context: Optional[LegalContext] = None
    follow_up_suggestions: List[str] = Field(default_factory=list)
    related_topics: List[str] = Field(default_factory=list)

    assistant_message: Optional[Message] = None
    summary: Optional[str] = None
    reply: Optional[ChatReply] = None

    node_timings: Dict[str, float] = Field(default_factory=dict, description="Per-node execution times (ms)")
