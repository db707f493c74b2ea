"""Chat orchestrator using LangGraph for the legal chat service.

This module turns one inbound chat message into a grounded reply by walking a
compiled state graph: quota gate, conversation resolution, knowledge retrieval,
prompt composition, generation, post-processing and persistence.

Persistence ordering: the user message is stored as soon as the conversation is
resolved; the assistant message and the conversation totals are stored only after
generation and post-processing succeed. A failed generation therefore leaves an
unanswered user message behind, never an assistant message without a completed
generation.
"""

import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog
from langgraph.graph import END, StateGraph

from legalchat.composer.prompts import build_generation_context, compose_prompt
from legalchat.conversations.store import ConversationStore
from legalchat.errors import ChatError, PersistenceFailure, RetrievalFailure
from legalchat.guards.usage_guard import UsageGuard
from legalchat.llm.gateway import GenerationGateway
from legalchat.postprocess.extractors import (
    extract_citations,
    extract_legal_context,
    extract_related_topics,
    generate_follow_up_suggestions,
)
from legalchat.retrieval.retriever import KnowledgeRetriever
from legalchat.schemas.chat import (
    ChatReply,
    ChatRequest,
    Conversation,
    ConversationWithMessages,
    MessageMetadata,
    UsageDecision,
    VectorSourceRef,
)
from legalchat.schemas.turn_state import ChatTurnState

logger = structlog.get_logger(__name__)

NodeFn = Callable[[ChatTurnState], Awaitable[Dict[str, Any]]]


class ChatOrchestrator:
    """Main orchestrator for legal chat turns."""

    def __init__(
        self,
        usage_guard: UsageGuard,
        store: ConversationStore,
        retriever: KnowledgeRetriever,
        gateway: GenerationGateway,
        recent_messages_limit: int = 5,
        jurisdiction: str = "Kenya",
        prompt_relevance_floor: float = 0.7,
        source_citation_threshold: float = 0.8,
    ):
        self.usage_guard = usage_guard
        self.store = store
        self.retriever = retriever
        self.gateway = gateway
        self.recent_messages_limit = recent_messages_limit
        self.jurisdiction = jurisdiction
        self.prompt_relevance_floor = prompt_relevance_floor
        self.source_citation_threshold = source_citation_threshold
        self.graph = self._build_graph()

    def _build_graph(self):
        """Build and compile the LangGraph state machine."""
        graph = StateGraph(ChatTurnState)

        graph.add_node("01_check_limit", self._stage("limit_checked", self._check_limit_node))
        graph.add_node("01b_reject_over_quota", self._stage("limit_checked", self._reject_over_quota_node))
        graph.add_node("02_resolve_conversation", self._stage("conversation_resolved", self._resolve_conversation_node))
        graph.add_node("03_retrieve", self._stage("retrieved", self._retrieve_node))
        graph.add_node("04_compose", self._stage("composed", self._compose_node))
        graph.add_node("05_generate", self._stage("generated", self._generate_node))
        graph.add_node("06_post_process", self._stage("post_processed", self._post_process_node))
        graph.add_node("07_persist", self._stage("persisted", self._persist_node))
        graph.add_node("07b_summarize", self._summarize_node)
        graph.add_node("08_reply", self._stage("replied", self._reply_node))

        graph.set_entry_point("01_check_limit")

        graph.add_conditional_edges(
            "01_check_limit",
            self._decide_quota,
            {"allowed": "02_resolve_conversation", "denied": "01b_reject_over_quota"},
        )
        graph.add_edge("01b_reject_over_quota", END)

        graph.add_edge("02_resolve_conversation", "03_retrieve")
        graph.add_edge("03_retrieve", "04_compose")
        graph.add_edge("04_compose", "05_generate")
        graph.add_edge("05_generate", "06_post_process")
        graph.add_edge("06_post_process", "07_persist")

        # Summarization is a side branch; the reply does not depend on it.
        graph.add_conditional_edges(
            "07_persist",
            self._decide_summarize,
            {"summarize": "07b_summarize", "skip": "08_reply"},
        )
        graph.add_edge("07b_summarize", "08_reply")
        graph.add_edge("08_reply", END)

        compiled_graph = graph.compile()
        logger.info("Chat orchestrator graph compiled")
        return compiled_graph

    def _stage(self, stage: str, fn: NodeFn) -> NodeFn:
        """Wrap a node: record its timing and tag escaping errors with the stage."""

        async def node(state: ChatTurnState) -> Dict[str, Any]:
            start_time = time.time()
            try:
                update = await fn(state)
            except ChatError as e:
                if e.stage is None:
                    e.stage = stage
                raise
            duration_ms = round((time.time() - start_time) * 1000, 2)
            update["stage"] = stage
            update["node_timings"] = {**state.node_timings, stage: duration_ms}
            return update

        return node

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def _decide_quota(self, state: ChatTurnState) -> str:
        return "allowed" if state.usage_decision and state.usage_decision.allowed else "denied"

    def _decide_summarize(self, state: ChatTurnState) -> str:
        # Counts as stored before this turn, plus the user and assistant messages.
        message_count = (state.conversation.message_count if state.conversation else 0) + 2
        if message_count >= self.store.summary_min_messages:
            return "summarize"
        return "skip"

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    async def _check_limit_node(self, state: ChatTurnState) -> Dict[str, Any]:
        decision = await self.usage_guard.check(state.request.user_id, state.request.message)
        return {"usage_decision": decision}

    async def _reject_over_quota_node(self, state: ChatTurnState) -> Dict[str, Any]:
        decision = state.usage_decision or UsageDecision(allowed=False)
        self.usage_guard.raise_if_denied(state.request.user_id, decision)
        return {}

    async def _resolve_conversation_node(self, state: ChatTurnState) -> Dict[str, Any]:
        request = state.request
        conversation = await self.store.resolve_or_create(
            request.conversation_id, request.user_id, request.domain_hint
        )

        prior_turns = []
        if conversation.message_count > 0:
            prior_turns = await self.store.recent_messages(conversation.id, self.recent_messages_limit)

        user_message = await self.store.append_message(conversation.id, "user", request.message)

        return {
            "conversation": conversation,
            "prior_turns": prior_turns,
            "prior_context_summary": request.previous_context or conversation.conversation_summary,
            "user_message": user_message,
        }

    async def _retrieve_node(self, state: ChatTurnState) -> Dict[str, Any]:
        request = state.request
        try:
            results = await self.retriever.search(
                request.message,
                request.user_id,
                domain_filter=request.domain_hint,
            )
        except RetrievalFailure as e:
            # Grounding is best-effort; continue with an empty source set.
            logger.warning(
                "Retrieval failed, continuing without sources",
                conversation_id=state.conversation.id,
                timed_out=e.timed_out,
                error=e.message,
            )
            return {"retrieval_results": [], "retrieval_failed": True}
        return {"retrieval_results": results}

    async def _compose_node(self, state: ChatTurnState) -> Dict[str, Any]:
        prompt = compose_prompt(
            state.request.message,
            state.retrieval_results,
            state.prior_turns,
            state.prior_context_summary,
            jurisdiction=self.jurisdiction,
            relevance_floor=self.prompt_relevance_floor,
        )
        context = build_generation_context(
            state.prior_turns, state.retrieval_results, state.request.domain_hint
        )
        logger.debug(
            "Prompt composed",
            prompt_length=len(prompt),
            sources=len(state.retrieval_results),
            history_turns=len(state.prior_turns),
        )
        return {"prompt": prompt, "generation_context": context}

    async def _generate_node(self, state: ChatTurnState) -> Dict[str, Any]:
        generation = await self.gateway.generate(
            state.prompt,
            state.request.user_id,
            state.generation_context,
            session_meta={
                "conversation_id": state.conversation.id,
                "legal_area": state.request.domain_hint,
            },
        )
        return {"generation": generation}

    async def _post_process_node(self, state: ChatTurnState) -> Dict[str, Any]:
        content = state.generation.content
        hint = state.request.domain_hint
        return {
            "citations": extract_citations(
                content, state.retrieval_results, source_threshold=self.source_citation_threshold
            ),
            "legal_context": extract_legal_context(content, hint),
            "follow_up_suggestions": generate_follow_up_suggestions(content, hint),
            "related_topics": extract_related_topics(content),
        }

    async def _persist_node(self, state: ChatTurnState) -> Dict[str, Any]:
        generation = state.generation
        conversation_id = state.conversation.id
        metadata = MessageMetadata(
            tokens_used=generation.tokens_used.total,
            model_used=generation.model,
            vector_sources=[
                VectorSourceRef(source_id=r.source.id, relevance=r.relevance_score)
                for r in state.retrieval_results
            ],
            confidence_score=generation.confidence_score,
            legal_citations=state.citations,
            processing_time_ms=generation.processing_time_ms,
        )
        try:
            assistant_message = await self.store.record_assistant_turn(
                conversation_id,
                generation.content,
                metadata,
                [r.source.id for r in state.retrieval_results],
                state.legal_context,
            )
        except PersistenceFailure as e:
            logger.error(
                "Generated answer could not be recorded",
                conversation_id=conversation_id,
                total_tokens=generation.tokens_used.total,
                error=e.message,
            )
            raise
        return {"assistant_message": assistant_message}

    async def _summarize_node(self, state: ChatTurnState) -> Dict[str, Any]:
        try:
            summary = await self.store.summarize(state.conversation.id)
        except Exception as e:
            logger.warning(
                "Conversation summary failed",
                conversation_id=state.conversation.id,
                error=str(e),
            )
            return {"summary": None}
        return {"summary": summary or None}

    async def _reply_node(self, state: ChatTurnState) -> Dict[str, Any]:
        generation = state.generation
        await self.usage_guard.record(state.request.user_id, generation.tokens_used.total)
        reply = ChatReply(
            message=generation.content,
            conversation_id=state.conversation.id,
            sources_used=[r.source for r in state.retrieval_results],
            citations=state.citations,
            confidence_score=generation.confidence_score,
            follow_up_suggestions=state.follow_up_suggestions,
            related_topics=state.related_topics,
        )
        return {"reply": reply}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run_turn(self, request: ChatRequest, request_id: Optional[str] = None) -> ChatTurnState:
        """Run one chat turn through the graph and return the final state."""
        state = ChatTurnState(request=request)
        # Explicitly set so the graph carries this id rather than regenerating it.
        state.request_id = request_id or state.request_id

        with structlog.contextvars.bound_contextvars(
            request_id=state.request_id,
            user_id=request.user_id,
            conversation_id=request.conversation_id,
        ):
            logger.info(
                "Starting chat turn",
                message_length=len(request.message),
                domain_hint=request.domain_hint,
            )
            start_time = time.time()
            try:
                result = await self.graph.ainvoke(state)
            except ChatError as e:
                logger.warning(
                    "Chat turn failed",
                    stage="failed",
                    failed_at=e.stage,
                    error_code=e.error_code,
                    error=e.message,
                )
                raise

            if isinstance(result, dict):
                result = ChatTurnState.model_validate(result)

            logger.info(
                "Chat turn completed",
                conversation_id=result.conversation.id,
                sources=len(result.retrieval_results),
                retrieval_failed=result.retrieval_failed,
                total_tokens=result.generation.tokens_used.total,
                duration_ms=round((time.time() - start_time) * 1000, 2),
            )
            return result

    async def send_message(self, request: ChatRequest, request_id: Optional[str] = None) -> ChatReply:
        result = await self.run_turn(request, request_id=request_id)
        return result.reply

    async def get_conversation(self, conversation_id: str, user_id: str) -> ConversationWithMessages:
        return await self.store.get_conversation(conversation_id, user_id)

    async def list_conversations(self, user_id: str, limit: int = 20) -> List[Conversation]:
        return await self.store.list_conversations(user_id, limit)

    async def delete_conversation(self, conversation_id: str, user_id: str) -> None:
        await self.store.delete_conversation(conversation_id, user_id)

    async def rename_conversation(self, conversation_id: str, user_id: str, title: str) -> None:
        await self.store.rename_conversation(conversation_id, user_id, title)
