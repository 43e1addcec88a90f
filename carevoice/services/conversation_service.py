"""
Conversation Service - the message append pipeline.

This is the core service that:
1. Loads the owner's conversation
2. Appends the user message
3. Calls the AI responder with the full history
4. Appends the assistant reply
5. Recomputes derived metadata
6. Persists the conversation

Steps 2-6 act as one unit: the conversation is only written once the
whole turn is ready, so a failed turn leaves stored state untouched.
"""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncGenerator, Callable, Dict, List, Optional

import structlog

from carevoice.adapters.responder import AIResponse, ConversationResponder
from carevoice.errors import ConversationServiceError, GenerationError
from carevoice.models.schemas import (
    ASSISTANT_ROLE,
    USER_ROLE,
    Conversation,
    ConversationSummary,
    Message,
    utcnow,
)
from carevoice.services.metadata import recompute
from carevoice.services.store import ConversationStore

logger = structlog.get_logger()


@dataclass
class AppendResult:
    """Outcome of a successful append."""

    reply_message: str
    reply_audio_url: Optional[str]
    conversation: Conversation


class ConversationLocks:
    """
    Per-conversation asyncio locks.

    A lock lives only while someone holds or waits on it.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncGenerator[None, None]:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        lock = self._locks[key]
        self._holders[key] = self._holders.get(key, 0) + 1

        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class ConversationService:
    """
    Orchestrates conversation operations over a store and a responder.

    Appends to the same conversation are serialized in-process; stores
    additionally reject saves of stale copies.
    """

    def __init__(
        self,
        store: ConversationStore,
        responder: ConversationResponder,
        ai_timeout_seconds: float = 30.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.responder = responder
        self.ai_timeout_seconds = ai_timeout_seconds
        self._clock = clock
        self._locks = ConversationLocks()

    async def create_conversation(self, owner_id: str, title: Optional[str] = None) -> Conversation:
        conversation = await self.store.create(owner_id, title)
        logger.info("conversation_created", owner_id=owner_id, conversation_id=conversation.id)
        return conversation

    async def list_conversations(self, owner_id: str) -> List[ConversationSummary]:
        return await self.store.list_by_owner(owner_id)

    async def get_conversation(self, owner_id: str, conversation_id: str) -> Conversation:
        return await self.store.get_by_owner_and_id(owner_id, conversation_id)

    async def append_user_message(
        self,
        owner_id: str,
        conversation_id: str,
        content: str,
        audio_url: Optional[str] = None,
    ) -> AppendResult:
        """
        Append a user message and the assistant's reply.

        Args:
            owner_id: Authenticated user ID
            conversation_id: Conversation to append to
            content: User message text
            audio_url: Optional reference to the user's audio

        Returns:
            AppendResult with the reply and the updated conversation

        Raises:
            NotFoundError: Conversation absent or not owned by owner_id
            GenerationError: AI responder failed or timed out
            StoreError: Loading or saving failed (ConflictError on a lost race)
        """
        log = logger.bind(owner_id=owner_id, conversation_id=conversation_id)

        async with self._locks.hold(conversation_id):
            conversation = await self.store.get_by_owner_and_id(owner_id, conversation_id)

            conversation.messages.append(
                Message(
                    role=USER_ROLE,
                    content=content,
                    timestamp=self._next_timestamp(conversation),
                    audio_url=audio_url,
                )
            )

            ai_response = await self._generate(conversation, content, log)

            conversation.messages.append(
                Message(
                    role=ASSISTANT_ROLE,
                    content=ai_response.message,
                    timestamp=self._next_timestamp(conversation),
                    audio_url=ai_response.audio_url,
                )
            )
            conversation.metadata = recompute(conversation, ai_response, now=self._clock())

            await self.store.save(conversation)

        log.info(
            "message_appended",
            message_count=len(conversation.messages),
            duration=conversation.metadata.duration,
            sentiment=conversation.metadata.sentiment,
            intent_count=len(conversation.metadata.intents),
        )

        return AppendResult(
            reply_message=ai_response.message,
            reply_audio_url=ai_response.audio_url,
            conversation=conversation,
        )

    async def _generate(
        self,
        conversation: Conversation,
        content: str,
        log: structlog.stdlib.BoundLogger,
    ) -> AIResponse:
        """Call the responder, bounded by the configured timeout."""
        try:
            return await asyncio.wait_for(
                self.responder.respond(content, list(conversation.messages)),
                timeout=self.ai_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            log.error("generation_timeout", timeout_seconds=self.ai_timeout_seconds)
            raise GenerationError(details={"reason": "timeout"}) from e
        except ConversationServiceError:
            raise
        except Exception as e:
            log.exception("generation_failed", error=str(e))
            raise GenerationError(details={"reason": str(e)}) from e

    def _next_timestamp(self, conversation: Conversation) -> datetime:
        """Current time, never earlier than the last message."""
        now = self._clock()
        if conversation.messages and conversation.messages[-1].timestamp > now:
            return conversation.messages[-1].timestamp
        return now
