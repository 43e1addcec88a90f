"""
Conversation Store - persistence of conversation documents keyed by owner.

Handles:
- Creating empty conversations with a default title
- Owner-scoped listing (summaries) and lookup
- Full-document saves guarded by a version check

Stores hand out copies: edits to a loaded conversation are invisible to
other readers until save() succeeds.
"""
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError

from carevoice.config import Settings, get_settings
from carevoice.database import ConversationRepository, DatabaseManager
from carevoice.database.models import ConversationRecord
from carevoice.errors import ConflictError, NotFoundError, StoreError
from carevoice.models.schemas import (
    Conversation,
    ConversationMetadata,
    ConversationSummary,
    Message,
    utcnow,
)

logger = structlog.get_logger()

DEFAULT_TITLE = "New Conversation"


class ConversationStore(ABC):
    """Interface for saving and loading conversations."""

    def __init__(self, default_title: str = DEFAULT_TITLE) -> None:
        self.default_title = default_title

    async def start(self) -> None:
        """Prepare the store for use."""

    async def close(self) -> None:
        """Release store resources."""

    async def health_check(self) -> bool:
        """Check the store is reachable."""
        return True

    @abstractmethod
    async def create(self, owner_id: str, title: Optional[str] = None) -> Conversation:
        """Create and persist a new empty conversation."""

    @abstractmethod
    async def list_by_owner(self, owner_id: str) -> List[ConversationSummary]:
        """List an owner's conversations, most recently updated first."""

    @abstractmethod
    async def get_by_owner_and_id(self, owner_id: str, conversation_id: str) -> Conversation:
        """
        Load a conversation.

        Raises:
            NotFoundError: If absent or owned by a different user
        """

    @abstractmethod
    async def save(self, conversation: Conversation) -> None:
        """
        Persist the full state of a loaded conversation.

        Raises:
            ConflictError: If the stored copy changed since it was loaded
        """

    def _new_conversation(self, owner_id: str, title: Optional[str]) -> Conversation:
        now = utcnow()
        return Conversation(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            title=title if title and title.strip() else self.default_title,
            metadata=ConversationMetadata(created=now, updated=now),
        )

    @staticmethod
    def _summarize(conversation: Conversation) -> ConversationSummary:
        return ConversationSummary(
            id=conversation.id,
            title=conversation.title,
            metadata=conversation.metadata.model_copy(deep=True),
        )


class InMemoryConversationStore(ConversationStore):
    """
    Keeps conversations in a process-local dictionary.

    Suitable for development and tests; contents are lost on restart.
    """

    def __init__(self, default_title: str = DEFAULT_TITLE) -> None:
        super().__init__(default_title)
        self._conversations: Dict[str, Conversation] = {}

    async def create(self, owner_id: str, title: Optional[str] = None) -> Conversation:
        conversation = self._new_conversation(owner_id, title)
        self._conversations[conversation.id] = conversation.model_copy(deep=True)
        return conversation

    async def list_by_owner(self, owner_id: str) -> List[ConversationSummary]:
        owned = [c for c in self._conversations.values() if c.owner_id == owner_id]
        owned.sort(key=lambda c: c.metadata.updated, reverse=True)
        return [self._summarize(c) for c in owned]

    async def get_by_owner_and_id(self, owner_id: str, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None or conversation.owner_id != owner_id:
            raise NotFoundError(conversation_id)
        return conversation.model_copy(deep=True)

    async def save(self, conversation: Conversation) -> None:
        stored = self._conversations.get(conversation.id)
        if stored is None or stored.owner_id != conversation.owner_id:
            raise NotFoundError(conversation.id)
        if stored.version != conversation.version:
            raise ConflictError(conversation.id, conversation.version)

        conversation.with_version(conversation.version + 1)
        self._conversations[conversation.id] = conversation.model_copy(deep=True)


class SQLConversationStore(ConversationStore):
    """
    Conversation store backed by SQLAlchemy (async).

    Saves are conditional updates on the row version, so a writer that
    loaded a stale copy gets a ConflictError instead of overwriting.
    """

    def __init__(self, database: DatabaseManager, default_title: str = DEFAULT_TITLE) -> None:
        super().__init__(default_title)
        self.database = database

    async def start(self) -> None:
        async with self._guard("create_tables"):
            await self.database.create_all()

    async def close(self) -> None:
        await self.database.close()

    async def health_check(self) -> bool:
        return await self.database.health_check()

    async def create(self, owner_id: str, title: Optional[str] = None) -> Conversation:
        conversation = self._new_conversation(owner_id, title)

        async with self._guard("create", owner_id=owner_id), self.database.session() as session:
            await ConversationRepository(session).create(version=0, **self._to_row(conversation))

        return conversation

    async def list_by_owner(self, owner_id: str) -> List[ConversationSummary]:
        async with self._guard("list", owner_id=owner_id), self.database.session() as session:
            rows = await ConversationRepository(session).list_for_owner(owner_id)

        return [
            ConversationSummary(
                id=row.id,
                title=row.title,
                metadata=ConversationMetadata.model_validate(row.metadata_json),
            )
            for row in rows
        ]

    async def get_by_owner_and_id(self, owner_id: str, conversation_id: str) -> Conversation:
        async with self._guard("get", conversation_id=conversation_id), self.database.session() as session:
            record = await ConversationRepository(session).get_for_owner(owner_id, conversation_id)

        if record is None:
            raise NotFoundError(conversation_id)
        return self._from_row(record)

    async def save(self, conversation: Conversation) -> None:
        row = self._to_row(conversation)

        async with self._guard("save", conversation_id=conversation.id), self.database.session() as session:
            updated = await ConversationRepository(session).update_if_version(
                conversation.id,
                conversation.owner_id,
                expected_version=conversation.version,
                title=row["title"],
                messages=row["messages"],
                metadata_json=row["metadata_json"],
                updated_at=row["updated_at"],
            )

        if not updated:
            raise ConflictError(conversation.id, conversation.version)
        conversation.with_version(conversation.version + 1)

    @asynccontextmanager
    async def _guard(self, operation: str, **context: Any) -> AsyncGenerator[None, None]:
        """Translate database errors into StoreError."""
        try:
            yield
        except SQLAlchemyError as e:
            logger.error("store_operation_failed", operation=operation, error=str(e), **context)
            raise StoreError(details={"operation": operation, "error": str(e)}) from e

    @staticmethod
    def _to_row(conversation: Conversation) -> Dict[str, Any]:
        return {
            "id": conversation.id,
            "owner_id": conversation.owner_id,
            "title": conversation.title,
            "messages": [m.model_dump(mode="json", by_alias=True) for m in conversation.messages],
            "metadata_json": conversation.metadata.model_dump(mode="json"),
            "created_at": conversation.metadata.created,
            "updated_at": conversation.metadata.updated,
        }

    @staticmethod
    def _from_row(record: ConversationRecord) -> Conversation:
        conversation = Conversation(
            id=record.id,
            owner_id=record.owner_id,
            title=record.title,
            messages=[Message.model_validate(m) for m in record.messages],
            metadata=ConversationMetadata.model_validate(record.metadata_json),
        )
        return conversation.with_version(record.version)


def create_store(settings: Settings | None = None) -> ConversationStore:
    """Create the conversation store for the configured backend."""
    settings = settings or get_settings()

    if settings.store_backend == "memory":
        return InMemoryConversationStore(default_title=settings.default_title)

    database = DatabaseManager(settings.database_url, echo=settings.database_echo)
    return SQLConversationStore(database, default_title=settings.default_title)
