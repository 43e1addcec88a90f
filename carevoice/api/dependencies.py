"""
API Dependencies

FastAPI dependencies for authentication and the services held on
application state.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from carevoice.api.auth import TokenVerifier
from carevoice.errors import AuthenticationError
from carevoice.services import ConversationService

bearer_scheme = HTTPBearer(auto_error=False)


def get_token_verifier(request: Request) -> TokenVerifier:
    return request.app.state.token_verifier


def get_conversation_service(request: Request) -> ConversationService:
    return request.app.state.conversation_service


async def get_owner_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> str:
    """
    Resolve the authenticated owner id from the Authorization header.

    Usage in routes:
        @router.get("/conversations")
        async def list_conversations(owner_id: str = Depends(get_owner_id)):
            ...
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError(message="No token provided")
    return verifier.verify(credentials.credentials)
