"""
Conversation API routes.

Provides:
- POST /api/conversations - Create a conversation
- GET /api/conversations - List the caller's conversations
- GET /api/conversations/{id} - Get a conversation with messages
- POST /api/conversations/{id}/messages - Send a message and get the reply
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from slowapi import Limiter

from carevoice.api.dependencies import get_conversation_service, get_owner_id
from carevoice.models import (
    AddMessageRequest,
    AddMessageResponse,
    Conversation,
    ConversationSummary,
    CreateConversationRequest,
    ErrorResponse,
)
from carevoice.services import ConversationService


def create_router(limiter: Limiter, append_limit: str) -> APIRouter:
    """
    Build the conversations router.

    Args:
        limiter: The application's rate limiter
        append_limit: Limit string for the append route, e.g. "100/60seconds"
    """
    router = APIRouter(prefix="/api/conversations", tags=["Conversations"])

    @router.post(
        "",
        response_model=Conversation,
        response_model_exclude_none=True,
        status_code=status.HTTP_201_CREATED,
        responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
        summary="Create a conversation",
    )
    async def create_conversation(
        body: Optional[CreateConversationRequest] = None,
        owner_id: str = Depends(get_owner_id),
        service: ConversationService = Depends(get_conversation_service),
    ) -> Conversation:
        title = body.title if body else None
        return await service.create_conversation(owner_id, title)

    @router.get(
        "",
        response_model=List[ConversationSummary],
        response_model_exclude_none=True,
        responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
        summary="List conversations",
        description="Conversations owned by the caller, most recently updated first. Messages are omitted.",
    )
    async def list_conversations(
        owner_id: str = Depends(get_owner_id),
        service: ConversationService = Depends(get_conversation_service),
    ) -> List[ConversationSummary]:
        return await service.list_conversations(owner_id)

    @router.get(
        "/{conversation_id}",
        response_model=Conversation,
        response_model_exclude_none=True,
        responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
        summary="Get a conversation",
    )
    async def get_conversation(
        conversation_id: str,
        owner_id: str = Depends(get_owner_id),
        service: ConversationService = Depends(get_conversation_service),
    ) -> Conversation:
        return await service.get_conversation(owner_id, conversation_id)

    @router.post(
        "/{conversation_id}/messages",
        response_model=AddMessageResponse,
        response_model_exclude_none=True,
        responses={
            400: {"model": ErrorResponse, "description": "Validation error"},
            401: {"model": ErrorResponse, "description": "Missing or invalid token"},
            404: {"model": ErrorResponse, "description": "Conversation not found"},
            409: {"model": ErrorResponse, "description": "Concurrent modification"},
            429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
            500: {"model": ErrorResponse, "description": "Generation or storage failure"},
        },
        summary="Send a message",
        description="""
Append a user message and return the assistant's reply.

The service:
1. Loads the caller's conversation
2. Appends the user message
3. Generates the reply from the full history
4. Appends the reply and updates duration, sentiment and intents
5. Saves the conversation

If any step fails nothing is saved.
""",
    )
    @limiter.limit(append_limit)
    async def add_message(
        request: Request,
        conversation_id: str,
        body: AddMessageRequest,
        owner_id: str = Depends(get_owner_id),
        service: ConversationService = Depends(get_conversation_service),
    ) -> AddMessageResponse:
        result = await service.append_user_message(
            owner_id=owner_id,
            conversation_id=conversation_id,
            content=body.content,
            audio_url=body.audio_url,
        )
        return AddMessageResponse(
            message=result.reply_message,
            audio_url=result.reply_audio_url,
            conversation=result.conversation,
        )

    return router
