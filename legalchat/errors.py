"""Error kinds raised by the legal chat core.

Every failure that crosses the orchestrator boundary is a ``ChatError`` subclass so
the presentation layer can pick user-facing copy from ``error_code`` alone.
Retrieval failures are the only kind the orchestrator absorbs; all others reach the
caller with their kind intact.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ChatError(Exception):
    """Base class for chat core failures.

    Attributes:
        error_code: Machine-readable code (e.g. "QUOTA_EXCEEDED").
        message: Human-readable message.
        http_status: Status code used when rendered over HTTP.
        retryable: Whether the caller may retry the same request.
        details: Extra context (never contains message content).
        stage: Orchestrator stage the error was raised in, when known.
    """

    error_code = "CHAT_ERROR"
    http_status = 500
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.stage: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            "details": {k: str(v) for k, v in self.details.items()} or None,
        }


class QuotaExceeded(ChatError):
    """The usage guard denied the request; resets with the quota period."""

    error_code = "QUOTA_EXCEEDED"
    http_status = 429


class QuotaServiceUnavailable(ChatError):
    """The quota service could not be reached; the guard failed closed."""

    error_code = "QUOTA_SERVICE_UNAVAILABLE"
    http_status = 503
    retryable = True


class ConversationNotFound(ChatError):
    error_code = "CONVERSATION_NOT_FOUND"
    http_status = 404


class ConversationForbidden(ChatError):
    error_code = "CONVERSATION_FORBIDDEN"
    http_status = 403


class RetrievalFailure(ChatError):
    """Knowledge search errored or timed out."""

    error_code = "RETRIEVAL_FAILURE"
    http_status = 502
    retryable = True

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        timed_out: bool = False,
    ):
        super().__init__(message, details)
        self.timed_out = timed_out


class GenerationFailure(ChatError):
    error_code = "GENERATION_FAILURE"
    http_status = 502
    retryable = True


class GenerationTimeout(ChatError):
    error_code = "GENERATION_TIMEOUT"
    http_status = 504
    retryable = True


class PersistenceFailure(ChatError):
    """Writing a conversation or message failed."""

    error_code = "PERSISTENCE_FAILURE"
    http_status = 500
