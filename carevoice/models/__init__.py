"""Data models for the conversation service."""
from .schemas import (
    ASSISTANT_ROLE,
    USER_ROLE,
    AddMessageRequest,
    AddMessageResponse,
    Conversation,
    ConversationMetadata,
    ConversationSummary,
    CreateConversationRequest,
    ErrorResponse,
    HealthResponse,
    Message,
    utcnow,
)

__all__ = [
    "ASSISTANT_ROLE",
    "USER_ROLE",
    "AddMessageRequest",
    "AddMessageResponse",
    "Conversation",
    "ConversationMetadata",
    "ConversationSummary",
    "CreateConversationRequest",
    "ErrorResponse",
    "HealthResponse",
    "Message",
    "utcnow",
]
