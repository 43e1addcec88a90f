"""
Database Repositories

Repository pattern implementation for conversation data access.
"""

from typing import Any, Optional, Sequence

from sqlalchemy import Row, and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import ConversationRecord


class ConversationRepository:
    """Repository for ConversationRecord rows."""

    model = ConversationRecord

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> ConversationRecord:
        """Insert a new conversation row."""
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def get_for_owner(self, owner_id: str, id: str) -> Optional[ConversationRecord]:
        """Get a conversation only if it belongs to owner_id."""
        result = await self.session.execute(
            select(ConversationRecord).where(
                and_(
                    ConversationRecord.id == id,
                    ConversationRecord.owner_id == owner_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def list_for_owner(self, owner_id: str) -> Sequence[Row]:
        """
        List an owner's conversations, most recently updated first.

        Rows carry only id, title and metadata_json; message bodies are
        not loaded.
        """
        result = await self.session.execute(
            select(
                ConversationRecord.id,
                ConversationRecord.title,
                ConversationRecord.metadata_json,
            )
            .where(ConversationRecord.owner_id == owner_id)
            .order_by(ConversationRecord.updated_at.desc())
        )
        return result.all()

    async def update_if_version(
        self,
        id: str,
        owner_id: str,
        expected_version: int,
        **values: Any,
    ) -> bool:
        """
        Conditionally overwrite a conversation row.

        The write only applies when the stored version still equals
        expected_version; the version is bumped in the same statement.

        Returns:
            True if a row was updated, False on a version mismatch
        """
        result = await self.session.execute(
            update(ConversationRecord)
            .where(
                and_(
                    ConversationRecord.id == id,
                    ConversationRecord.owner_id == owner_id,
                    ConversationRecord.version == expected_version,
                )
            )
            .values(version=expected_version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


__all__ = ["ConversationRepository"]
