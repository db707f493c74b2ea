"""Session-scoped access to the text-generation service.

Each call opens a generation session, runs one completion under a timeout and
closes the session in a ``finally`` block, so sessions are released on success,
failure and caller cancellation alike.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import httpx
import openai
import structlog

from legalchat.errors import GenerationFailure, GenerationTimeout
from legalchat.ports import GenerationService
from legalchat.schemas.chat import GenerationResult

logger = structlog.get_logger(__name__)


class GenerationGateway:
    def __init__(
        self,
        service: GenerationService,
        timeout_seconds: float = 60.0,
        default_confidence: float = 0.85,
    ):
        self.service = service
        self.timeout_seconds = timeout_seconds
        self.default_confidence = default_confidence

    async def generate(
        self,
        prompt: str,
        user_id: str,
        context: Dict[str, Any],
        session_meta: Optional[Dict[str, Any]] = None,
    ) -> GenerationResult:
        """
        Run one completion inside its own session.

        Raises:
            GenerationTimeout: The completion exceeded ``timeout_seconds``.
            GenerationFailure: Opening the session or generating failed.
        """
        try:
            session_id = await self.service.open_session(user_id, "chat", session_meta or {})
        except Exception as e:
            logger.error("Failed to open generation session", user_id=user_id, error=str(e))
            raise GenerationFailure("Failed to open generation session", details={"error": str(e)}) from e

        try:
            result = await asyncio.wait_for(
                self.service.generate(prompt, user_id, session_id, context),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error("Generation timed out", session_id=session_id, timeout_s=self.timeout_seconds)
            raise GenerationTimeout(
                "Generation timed out", details={"timeout_s": self.timeout_seconds}
            ) from e
        except (GenerationFailure, GenerationTimeout):
            raise
        except (openai.APITimeoutError, httpx.TimeoutException) as e:
            # The client gave up before our own deadline.
            logger.error("Generation service timed out", session_id=session_id, error_type=type(e).__name__)
            raise GenerationTimeout(
                "Generation service timed out", details={"error": str(e)}
            ) from e
        except Exception as e:
            logger.error(
                "Generation failed",
                session_id=session_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise GenerationFailure("Generation failed", details={"error": str(e)}) from e
        finally:
            await self._close_quietly(session_id)

        if result.confidence_score is None:
            result = result.model_copy(update={"confidence_score": self.default_confidence})

        logger.info(
            "Generation completed",
            session_id=session_id,
            model=result.model,
            total_tokens=result.tokens_used.total,
            processing_time_ms=result.processing_time_ms,
        )
        return result

    async def _close_quietly(self, session_id: str) -> None:
        # Shielded so a cancelled caller still releases the session.
        try:
            await asyncio.shield(self.service.close_session(session_id))
        except asyncio.CancelledError:
            logger.warning("Session close interrupted by cancellation", session_id=session_id)
            raise
        except Exception as e:
            logger.warning("Failed to close generation session", session_id=session_id, error=str(e))
