"""
Database Models

Conversations are stored as one row per document: messages and derived
metadata live in JSON columns, with ordering and ownership columns
denormalized for indexed queries.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ConversationRecord(Base):
    """Persisted conversation document."""

    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)

    # Document body
    messages: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    metadata_json: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Optimistic concurrency: bumped on every save
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Mirrors metadata.created / metadata.updated
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_conversations_owner_id", "owner_id"),
        # Listing query: owner's conversations by most recent activity
        Index("ix_conversations_owner_updated", "owner_id", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<ConversationRecord id={self.id} owner={self.owner_id} version={self.version}>"


__all__ = ["ConversationRecord"]
