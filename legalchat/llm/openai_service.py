"""OpenAI-backed generation service.

Implements the ``GenerationService`` port on ``openai.AsyncOpenAI`` chat
completions and keeps a small in-process registry of open sessions for usage
accounting and logging.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from openai import AsyncOpenAI

from legalchat.composer.prompts import build_system_prompt
from legalchat.schemas.chat import GenerationResult, TokenUsage

logger = structlog.get_logger(__name__)

# USD per 1K tokens
MODEL_COSTS = {
    "gpt-4": {"input": 0.03, "output": 0.06},
    "gpt-4-turbo": {"input": 0.01, "output": 0.03},
    "gpt-3.5-turbo": {"input": 0.0015, "output": 0.002},
}


def calculate_cost(prompt_tokens: int, completion_tokens: int, model: str) -> float:
    """Cost of one completion; unknown models are priced as gpt-4."""
    rates = MODEL_COSTS.get(model, MODEL_COSTS["gpt-4"])
    return (prompt_tokens / 1000) * rates["input"] + (completion_tokens / 1000) * rates["output"]


class OpenAIGenerationService:
    """
    Chat-completion generation for legal questions.

    Usage:
        service = OpenAIGenerationService(api_key="sk-...", model="gpt-4")
        session_id = await service.open_session(user_id, "chat", {"conversation_id": cid})
        result = await service.generate(prompt, user_id, session_id, context)
        await service.close_session(session_id)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4",
        max_tokens: int = 2000,
        temperature: float = 0.3,
        jurisdiction: str = "Kenya",
        client: Optional[AsyncOpenAI] = None,
    ):
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.jurisdiction = jurisdiction
        self.sessions: Dict[str, Dict[str, Any]] = {}

    async def open_session(self, user_id: str, kind: str, meta: Dict[str, Any]) -> str:
        session_id = str(uuid.uuid4())
        self.sessions[session_id] = {
            "user_id": user_id,
            "kind": kind,
            "meta": dict(meta),
            "started_at": datetime.now(timezone.utc),
            "total_tokens": 0,
            "cost_usd": 0.0,
        }
        logger.debug("Generation session opened", session_id=session_id, kind=kind)
        return session_id

    async def close_session(self, session_id: str) -> None:
        session = self.sessions.pop(session_id, None)
        if session is None:
            return
        logger.debug(
            "Generation session closed",
            session_id=session_id,
            total_tokens=session["total_tokens"],
            cost_usd=round(session["cost_usd"], 6),
        )

    def _build_messages(self, prompt: str, context: Dict[str, Any]) -> List[Dict[str, str]]:
        messages = [
            {
                "role": "system",
                "content": build_system_prompt(self.jurisdiction, context.get("legal_area")),
            }
        ]
        for turn in context.get("conversation_history") or []:
            messages.append({"role": turn["role"], "content": turn["content"]})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def generate(
        self, prompt: str, user_id: str, session_id: str, context: Dict[str, Any]
    ) -> GenerationResult:
        start_time = time.time()

        completion = await self.client.chat.completions.create(
            model=self.model,
            messages=self._build_messages(prompt, context),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )

        content = completion.choices[0].message.content or ""
        usage = completion.usage
        prompt_tokens = usage.prompt_tokens if usage else 0
        completion_tokens = usage.completion_tokens if usage else 0
        total_tokens = usage.total_tokens if usage else 0
        cost = calculate_cost(prompt_tokens, completion_tokens, self.model)

        session = self.sessions.get(session_id)
        if session is not None:
            session["total_tokens"] += total_tokens
            session["cost_usd"] += cost

        return GenerationResult(
            content=content,
            tokens_used=TokenUsage(prompt=prompt_tokens, completion=completion_tokens, total=total_tokens),
            model=self.model,
            processing_time_ms=int((time.time() - start_time) * 1000),
            cost_usd=cost,
        )
