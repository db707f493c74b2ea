"""Legal chat API service.

Builds the FastAPI application and wires the chat core to its adapters
(Redis usage ledger, Firestore or in-memory conversations, HTTP knowledge
service, OpenAI generation) from settings.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from legalchat.conversations.memory import InMemoryConversationRepository
from legalchat.conversations.store import ConversationStore
from legalchat.errors import ChatError
from legalchat.guards.usage_guard import UsageGuard
from legalchat.llm.gateway import GenerationGateway
from legalchat.llm.openai_service import OpenAIGenerationService
from legalchat.orchestrators.chat_orchestrator import ChatOrchestrator
from legalchat.ports import ConversationRepository
from legalchat.retrieval.http_store import HttpKnowledgeStore
from legalchat.retrieval.retriever import KnowledgeRetriever
from legalchat.routers import chat as chat_router
from legalchat.schemas.chat import ErrorResponse
from libs.caching.redis_client import close_redis_client, get_redis_client
from libs.common.settings import Settings, get_settings
from libs.telemetry.logging_config import configure_logging
from libs.usage.quota_ledger import RedisQuotaLedger

logger = structlog.get_logger(__name__)


def build_repository(settings: Settings) -> ConversationRepository:
    if settings.conversation_backend == "firestore":
        from libs.firebase.client import get_firestore_async_client
        from libs.firestore.conversations import FirestoreConversationRepository

        return FirestoreConversationRepository(get_firestore_async_client(settings))
    return InMemoryConversationRepository()


def build_orchestrator(settings: Settings, redis_client, repository: Optional[ConversationRepository] = None) -> ChatOrchestrator:
    """Wire the chat core to concrete adapters."""
    ledger = RedisQuotaLedger(
        redis_client,
        daily_limit=settings.daily_token_limit,
        monthly_limit=settings.monthly_token_limit,
    )
    store = ConversationStore(
        repository or build_repository(settings),
        summary_min_messages=settings.summary_min_messages,
        summary_window=settings.summary_window,
    )
    retriever = KnowledgeRetriever(
        HttpKnowledgeStore(settings.knowledge_service_url, token=settings.knowledge_service_token),
        jurisdiction=settings.jurisdiction,
        relevance_threshold=settings.retrieval_relevance_threshold,
        max_results=settings.retrieval_max_results,
        timeout_seconds=settings.retrieval_timeout_seconds,
    )
    gateway = GenerationGateway(
        OpenAIGenerationService(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            max_tokens=settings.openai_max_tokens,
            temperature=settings.openai_temperature,
            jurisdiction=settings.jurisdiction,
        ),
        timeout_seconds=settings.generation_timeout_seconds,
        default_confidence=settings.default_confidence_score,
    )
    return ChatOrchestrator(
        usage_guard=UsageGuard(ledger, timeout_seconds=settings.usage_check_timeout_seconds),
        store=store,
        retriever=retriever,
        gateway=gateway,
        recent_messages_limit=settings.recent_messages_limit,
        jurisdiction=settings.jurisdiction,
        prompt_relevance_floor=settings.prompt_relevance_threshold,
        source_citation_threshold=settings.source_citation_threshold,
    )


def create_app(orchestrator: Optional[ChatOrchestrator] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    When ``orchestrator`` is given it is used as-is and no adapters are built.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "orchestrator", None) is None:
            redis_client = await get_redis_client(
                settings.redis_url, use_fake=settings.app_env == "test"
            )
            app.state.orchestrator = build_orchestrator(settings, redis_client)
            logger.info(
                "Chat orchestrator initialized",
                conversation_backend=settings.conversation_backend,
                model=settings.openai_model,
            )
        yield
        await close_redis_client()

    app = FastAPI(
        title="Legal Chat API",
        description="Retrieval-augmented legal assistant for Kenyan law",
        version="1.0.0",
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator

    cors_origins = ["*"] if settings.is_development else settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=False if settings.is_development else True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError):
        body = ErrorResponse(
            error=exc.error_code,
            message=exc.message,
            details=exc.to_dict()["details"],
            request_id=getattr(request.state, "request_id", None),
        )
        return JSONResponse(status_code=exc.http_status, content=body.model_dump())

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests with timing and structured data."""
        start_time = time.time()
        request_id = request.headers.get("x-request-id") or f"req_{int(start_time * 1000000)}"
        request.state.request_id = request_id

        logger.info("Request started", request_id=request_id, method=request.method, path=request.url.path)
        response = await call_next(request)
        logger.info(
            "Request completed",
            request_id=request_id,
            status_code=response.status_code,
            process_time_ms=round((time.time() - start_time) * 1000, 2),
        )
        response.headers["X-Request-ID"] = request_id
        return response

    @app.get("/healthz", tags=["Health"])
    async def health_check():
        return {"status": "ok", "environment": settings.app_env}

    app.include_router(chat_router.router, prefix="/api", tags=["Chat"])
    return app
