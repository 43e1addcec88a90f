"""HTTP API for the conversation service."""
from .auth import TokenVerifier
from .routes import create_router

__all__ = ["TokenVerifier", "create_router"]
