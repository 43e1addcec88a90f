"""
Pydantic schemas for the conversation API.

Conversation documents serialize with camelCase keys (ownerId, audioUrl)
and ISO-8601 timestamps.
"""
from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
Role = Literal["user", "assistant"]


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class Message(BaseModel):
    """A single message within a conversation."""

    model_config = ConfigDict(populate_by_name=True)

    role: Role
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    audio_url: Optional[str] = Field(None, alias="audioUrl")


class ConversationMetadata(BaseModel):
    """Derived analytics kept on every conversation."""

    created: datetime = Field(default_factory=utcnow)
    updated: datetime = Field(default_factory=utcnow)
    duration: Optional[int] = Field(None, ge=0, description="Seconds from first user message to last message")
    sentiment: Optional[str] = None
    intents: List[str] = Field(default_factory=list)

    @field_validator("intents")
    @classmethod
    def _dedupe_intents(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))


class Conversation(BaseModel):
    """A conversation session owned by exactly one user."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    owner_id: str = Field(..., alias="ownerId")
    title: str
    messages: List[Message] = Field(default_factory=list)
    metadata: ConversationMetadata = Field(default_factory=ConversationMetadata)

    # Store revision the document was loaded at; never serialized.
    _version: int = PrivateAttr(default=0)

    @property
    def version(self) -> int:
        return self._version

    def with_version(self, version: int) -> "Conversation":
        self._version = version
        return self


class ConversationSummary(BaseModel):
    """Conversation projection used for listings (messages omitted)."""

    id: str
    title: str
    metadata: ConversationMetadata


class CreateConversationRequest(BaseModel):
    """Request model for creating a conversation."""

    title: Optional[str] = Field(None, max_length=200, description="Conversation title")

    model_config = {
        "json_schema_extra": {"examples": [{"title": "Interview prep"}]}
    }


class AddMessageRequest(BaseModel):
    """Request model for appending a user message."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {"content": "How should I prepare for system design rounds?"},
                {"content": "Hi", "audioUrl": "/uploads/recording-123.webm"},
            ]
        },
    )

    content: str = Field(..., min_length=1, max_length=10000, description="User message text")
    audio_url: Optional[str] = Field(None, alias="audioUrl", max_length=2048)


class AddMessageResponse(BaseModel):
    """Response model for an appended message."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., description="Assistant reply text")
    audio_url: Optional[str] = Field(None, alias="audioUrl", description="Assistant reply audio")
    conversation: Conversation


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["healthy", "unhealthy"] = "healthy"
    service: str = "carevoice"
    version: str = "1.0.0"
    timestamp: str


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str
    code: str
    details: dict[str, Any] | None = None
