"""
Bearer token verification.

Tokens are issued by the external auth service as HS256 JWTs carrying
the user id in a "userId" claim (or the standard "sub").
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from carevoice.errors import AuthenticationError, ErrorCode


class TokenVerifier:
    """Verifies bearer tokens and extracts the owner identity."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expires_hours: int = 24):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expires_in = timedelta(hours=expires_hours)

    def verify(self, token: str) -> str:
        """
        Verify a token and return the user id it was issued for.

        Raises:
            AuthenticationError: If the token is expired, malformed or
                carries no user id
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError(message="Token has expired", code=ErrorCode.INVALID_TOKEN)
        except jwt.InvalidTokenError:
            raise AuthenticationError(message="Invalid token", code=ErrorCode.INVALID_TOKEN)

        user_id = payload.get("userId") or payload.get("sub")
        if not user_id:
            raise AuthenticationError(message="Invalid token", code=ErrorCode.INVALID_TOKEN)
        return str(user_id)

    def create_token(
        self,
        user_id: str,
        expires_in: Optional[timedelta] = None,
        additional_claims: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Issue a token for user_id (development and tests).

        Tokens live for expires_hours unless expires_in is given.
        """
        now = datetime.now(timezone.utc)
        expires_in = expires_in if expires_in is not None else self.expires_in
        payload: Dict[str, Any] = {
            "userId": user_id,
            "iat": now,
            "exp": now + expires_in,
        }
        if additional_claims:
            payload.update(additional_claims)
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
