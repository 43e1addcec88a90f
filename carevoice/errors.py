"""
Error types for the conversation service.

Every failure the pipeline can surface is a ConversationServiceError
carrying a stable error code, a caller-safe message and the HTTP status
it maps to at the API boundary.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standardized error codes."""

    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    GENERATION_FAILED = "GENERATION_FAILED"
    STORE_FAILED = "STORE_FAILED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ConversationServiceError(Exception):
    """Base exception for conversation service failures."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class AuthenticationError(ConversationServiceError):
    """Missing or invalid bearer credential."""

    def __init__(
        self,
        message: str = "Authentication required",
        code: ErrorCode = ErrorCode.AUTHENTICATION_REQUIRED,
    ):
        super().__init__(code=code, message=message, status_code=401)


class NotFoundError(ConversationServiceError):
    """
    Conversation absent or owned by someone else.

    The message never distinguishes the two cases.
    """

    def __init__(self, conversation_id: str):
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message="Conversation not found",
            status_code=404,
            details={"conversation_id": conversation_id},
        )
        self.conversation_id = conversation_id


class GenerationError(ConversationServiceError):
    """AI response service failed or timed out."""

    def __init__(self, message: str = "Error processing message", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ErrorCode.GENERATION_FAILED,
            message=message,
            status_code=500,
            details=details,
        )


class StoreError(ConversationServiceError):
    """Persistence layer failed on read or write."""

    def __init__(
        self,
        message: str = "Error accessing conversation store",
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.STORE_FAILED,
        status_code: int = 500,
    ):
        super().__init__(code=code, message=message, status_code=status_code, details=details)


class ConflictError(StoreError):
    """Stored conversation changed since it was loaded."""

    def __init__(self, conversation_id: str, expected_version: int):
        super().__init__(
            message="Conversation was modified concurrently, please retry",
            details={"conversation_id": conversation_id, "expected_version": expected_version},
            code=ErrorCode.CONFLICT,
            status_code=409,
        )
        self.conversation_id = conversation_id
        self.expected_version = expected_version
