"""Pre-flight token quota check.

The guard never mutates quota state while checking. If the usage service cannot
answer, the guard fails closed with ``QuotaServiceUnavailable`` so callers can tell
an outage apart from a user who has legitimately hit their limit.
"""

from __future__ import annotations

import asyncio
import math

import structlog

from legalchat.errors import QuotaExceeded, QuotaServiceUnavailable
from legalchat.ports import UsageService
from legalchat.schemas.chat import UsageDecision

logger = structlog.get_logger(__name__)


def estimate_tokens(text: str) -> int:
    """Coarse pre-flight estimate: one token per four characters, rounded up."""
    return math.ceil(len(text) / 4)


class UsageGuard:
    """
    Gates paid operations on the user's remaining quota.

    Usage:
        guard = UsageGuard(ledger, timeout_seconds=3.0)
        await guard.enforce(user_id, message)      # raises on deny
        await guard.record(user_id, tokens_used)   # after a successful turn
    """

    def __init__(self, usage_service: UsageService, timeout_seconds: float = 3.0):
        self.usage_service = usage_service
        self.timeout_seconds = timeout_seconds

    async def check(self, user_id: str, message: str) -> UsageDecision:
        """
        Ask the usage service whether ``message`` fits the user's quota.

        Raises:
            QuotaServiceUnavailable: The service errored or timed out.
        """
        estimated = estimate_tokens(message)
        try:
            decision = await asyncio.wait_for(
                self.usage_service.check_limit(user_id, estimated),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error("Usage check timed out", user_id=user_id, timeout_s=self.timeout_seconds)
            raise QuotaServiceUnavailable(
                "Usage service timed out", details={"timeout_s": self.timeout_seconds}
            ) from e
        except Exception as e:
            logger.error("Usage check failed", user_id=user_id, error=str(e), error_type=type(e).__name__)
            raise QuotaServiceUnavailable("Usage service unavailable", details={"error": str(e)}) from e

        logger.debug(
            "Usage check completed",
            user_id=user_id,
            estimated_tokens=estimated,
            allowed=decision.allowed,
        )
        return decision

    def raise_if_denied(self, user_id: str, decision: UsageDecision) -> UsageDecision:
        """Raise ``QuotaExceeded`` for a deny decision, otherwise return it."""
        if not decision.allowed:
            reason = decision.reason or "Usage limit exceeded"
            logger.info("Usage limit reached", user_id=user_id, reason=reason)
            raise QuotaExceeded(reason, details={"reason": reason})
        return decision

    async def enforce(self, user_id: str, message: str) -> UsageDecision:
        """Like ``check`` but raises ``QuotaExceeded`` on a deny decision."""
        return self.raise_if_denied(user_id, await self.check(user_id, message))

    async def record(self, user_id: str, tokens: int) -> None:
        """Forward consumed tokens to the usage service; failures are only logged."""
        if tokens <= 0:
            return
        try:
            await self.usage_service.record_usage(user_id, tokens)
        except Exception as e:
            logger.warning("Failed to record token usage", user_id=user_id, tokens=tokens, error=str(e))
