"""Services for the conversation backend."""
from .conversation_service import AppendResult, ConversationLocks, ConversationService
from .metadata import compute_duration, merge_intents, recompute
from .store import ConversationStore, InMemoryConversationStore, SQLConversationStore, create_store

__all__ = [
    "AppendResult",
    "ConversationLocks",
    "ConversationService",
    "ConversationStore",
    "InMemoryConversationStore",
    "SQLConversationStore",
    "compute_duration",
    "create_store",
    "merge_intents",
    "recompute",
]
