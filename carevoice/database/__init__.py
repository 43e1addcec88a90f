"""Database layer for the conversation store."""
from .base import Base, DatabaseManager, to_async_url
from .models import ConversationRecord
from .repositories import ConversationRepository

__all__ = [
    "Base",
    "ConversationRecord",
    "ConversationRepository",
    "DatabaseManager",
    "to_async_url",
]
