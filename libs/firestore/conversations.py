"""Firestore-backed conversation repository.

Layout:
    chat_conversations/{conversation_id}                 conversation document
    chat_conversations/{conversation_id}/messages/{id}   message documents

Messages carry a ``sequence`` field assigned inside a transaction from the
conversation's ``message_count``, so insertion order is canonical and recent
windows are read ascending from a computed offset.
"""

from typing import List, Optional

import structlog
from google.cloud.firestore_v1 import ArrayUnion, Increment
from google.cloud.firestore_v1.async_client import AsyncClient
from google.cloud.firestore_v1.async_transaction import async_transactional
from google.cloud.firestore_v1.base_query import FieldFilter

from legalchat.schemas.chat import Conversation, LegalContext, Message, utcnow
from libs.models.firestore import FirestoreConversation, FirestoreMessage

logger = structlog.get_logger(__name__)

CONVERSATIONS_COLLECTION = "chat_conversations"
MESSAGES_SUBCOLLECTION = "messages"


@async_transactional
async def _append_in_transaction(
    transaction, conversation_ref, message_ref, message: Message, turn_update: Optional[dict] = None
) -> int:
    snapshot = await conversation_ref.get(transaction=transaction)
    if not snapshot.exists:
        raise KeyError(f"Unknown conversation {message.conversation_id}")

    sequence = int((snapshot.to_dict() or {}).get("message_count", 0))
    document = FirestoreMessage(
        id=message.id,
        conversation_id=message.conversation_id,
        role=message.role,
        content=message.content,
        metadata=message.metadata.model_dump() if message.metadata else None,
        sequence=sequence,
        created_at=message.created_at,
    )
    transaction.set(message_ref, document.model_dump())
    transaction.update(
        conversation_ref,
        {**(turn_update or {}), "message_count": sequence + 1, "updated_at": utcnow()},
    )
    return sequence


class FirestoreConversationRepository:
    """``ConversationRepository`` on the async Firestore client."""

    def __init__(self, client: AsyncClient):
        self.client = client

    def _conversation_ref(self, conversation_id: str):
        return self.client.collection(CONVERSATIONS_COLLECTION).document(conversation_id)

    def _messages_ref(self, conversation_id: str):
        return self._conversation_ref(conversation_id).collection(MESSAGES_SUBCOLLECTION)

    @staticmethod
    def _to_conversation(data: dict) -> Conversation:
        return Conversation.model_validate(FirestoreConversation(**data).model_dump())

    @staticmethod
    def _to_message(data: dict) -> Message:
        document = FirestoreMessage(**data)
        return Message.model_validate(document.model_dump(exclude={"sequence"}))

    async def create_conversation(self, conversation: Conversation) -> Conversation:
        document = FirestoreConversation(**conversation.model_dump(mode="python"))
        await self._conversation_ref(conversation.id).set(document.model_dump())
        return conversation

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        snapshot = await self._conversation_ref(conversation_id).get()
        if not snapshot.exists:
            return None
        return self._to_conversation(snapshot.to_dict())

    async def list_conversations(self, user_id: str, limit: int) -> List[Conversation]:
        query = (
            self.client.collection(CONVERSATIONS_COLLECTION)
            .where(filter=FieldFilter("user_id", "==", user_id))
            .order_by("updated_at", direction="DESCENDING")
            .limit(limit)
        )
        return [self._to_conversation(doc.to_dict()) async for doc in query.stream()]

    async def delete_conversation(self, conversation_id: str) -> None:
        # Firestore does not cascade deletes into sub-collections.
        batch = self.client.batch()
        async for doc in self._messages_ref(conversation_id).stream():
            batch.delete(doc.reference)
        batch.delete(self._conversation_ref(conversation_id))
        await batch.commit()

    async def update_title(self, conversation_id: str, title: str) -> None:
        await self._conversation_ref(conversation_id).update({"title": title, "updated_at": utcnow()})

    async def add_message(self, message: Message) -> Message:
        transaction = self.client.transaction()
        sequence = await _append_in_transaction(
            transaction,
            self._conversation_ref(message.conversation_id),
            self._messages_ref(message.conversation_id).document(message.id),
            message,
        )
        logger.debug("Message stored in Firestore", conversation_id=message.conversation_id, sequence=sequence)
        return message

    async def count_messages(self, conversation_id: str) -> int:
        snapshot = await self._conversation_ref(conversation_id).get()
        if not snapshot.exists:
            return 0
        return int((snapshot.to_dict() or {}).get("message_count", 0))

    async def list_messages(
        self, conversation_id: str, offset: int = 0, limit: Optional[int] = None
    ) -> List[Message]:
        query = self._messages_ref(conversation_id).where(filter=FieldFilter("sequence", ">=", offset))
        query = query.order_by("sequence")
        if limit is not None:
            query = query.limit(limit)
        return [self._to_message(doc.to_dict()) async for doc in query.stream()]

    @staticmethod
    def _turn_update(token_delta: int, source_ids: List[str], legal_context: LegalContext) -> dict:
        update_data = {
            "total_tokens_used": Increment(token_delta),
            "legal_context": legal_context.model_dump(),
            "updated_at": utcnow(),
        }
        if source_ids:
            update_data["knowledge_sources"] = ArrayUnion(source_ids)
        return update_data

    async def apply_turn_update(
        self,
        conversation_id: str,
        token_delta: int,
        source_ids: List[str],
        legal_context: LegalContext,
    ) -> None:
        await self._conversation_ref(conversation_id).update(
            self._turn_update(token_delta, source_ids, legal_context)
        )

    async def append_assistant_turn(
        self,
        message: Message,
        token_delta: int,
        source_ids: List[str],
        legal_context: LegalContext,
    ) -> Message:
        """Assistant message and conversation totals in one transaction."""
        transaction = self.client.transaction()
        sequence = await _append_in_transaction(
            transaction,
            self._conversation_ref(message.conversation_id),
            self._messages_ref(message.conversation_id).document(message.id),
            message,
            self._turn_update(token_delta, source_ids, legal_context),
        )
        logger.debug(
            "Assistant turn stored in Firestore",
            conversation_id=message.conversation_id,
            sequence=sequence,
            token_delta=token_delta,
        )
        return message

    async def set_summary(self, conversation_id: str, summary: str) -> None:
        await self._conversation_ref(conversation_id).update({"conversation_summary": summary})
