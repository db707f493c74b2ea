from __future__ import annotations

from typing import List

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response, status

from legalchat.orchestrators.chat_orchestrator import ChatOrchestrator
from legalchat.schemas.chat import (
    ChatMessageBody,
    ChatReply,
    Conversation,
    ConversationWithMessages,
    ErrorResponse,
    RenameConversationBody,
)

logger = structlog.get_logger(__name__)
router = APIRouter()

ERROR_RESPONSES = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}


def get_orchestrator(request: Request) -> ChatOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chat service not initialized",
        )
    return orchestrator


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """The upstream auth layer sets ``X-User-Id`` after verifying the caller."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user identity")
    return x_user_id.strip()


@router.post("/v1/chat", response_model=ChatReply, tags=["Chat"], responses=ERROR_RESPONSES)
async def send_chat_message(
    request: Request,
    body: ChatMessageBody,
    user_id: str = Depends(get_user_id),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> ChatReply:
    """Send a message and get a grounded legal answer.

    Example:
        ```bash
        curl -X POST http://localhost:8000/api/v1/chat \\
          -H "Content-Type: application/json" -H "X-User-Id: user-123" \\
          -d '{"message": "What are notice periods for termination in Kenya?", "domain_hint": "employment_law"}'
        ```
    """
    request_id = getattr(request.state, "request_id", None)
    return await orchestrator.send_message(body.to_request(user_id), request_id=request_id)


@router.get("/v1/chat/conversations", response_model=List[Conversation], tags=["Chat"])
async def list_conversations(
    limit: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(get_user_id),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> List[Conversation]:
    """Conversation history, most recently updated first."""
    return await orchestrator.list_conversations(user_id, limit)


@router.get(
    "/v1/chat/conversations/{conversation_id}",
    response_model=ConversationWithMessages,
    tags=["Chat"],
    responses=ERROR_RESPONSES,
)
async def get_conversation(
    conversation_id: str,
    user_id: str = Depends(get_user_id),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> ConversationWithMessages:
    return await orchestrator.get_conversation(conversation_id, user_id)


@router.patch(
    "/v1/chat/conversations/{conversation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Chat"],
    responses=ERROR_RESPONSES,
)
async def rename_conversation(
    conversation_id: str,
    body: RenameConversationBody,
    user_id: str = Depends(get_user_id),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> Response:
    await orchestrator.rename_conversation(conversation_id, user_id, body.title)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/v1/chat/conversations/{conversation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Chat"],
    responses=ERROR_RESPONSES,
)
async def delete_conversation(
    conversation_id: str,
    user_id: str = Depends(get_user_id),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Delete a conversation and its messages. Only ever triggered by the user."""
    await orchestrator.delete_conversation(conversation_id, user_id)
    logger.info("Conversation deleted via API", conversation_id=conversation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
