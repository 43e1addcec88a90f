"""Shared pytest fixtures for testing."""

import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Callable, Dict, List, Optional, Sequence, Union
from uuid import uuid4

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

# Set test environment before importing the app
os.environ["ENVIRONMENT"] = "test"
os.environ["STORE_BACKEND"] = "memory"
os.environ["AI_PROVIDER"] = "mock"
os.environ["SPEECH_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"

from carevoice.adapters import AIResponse, ConversationResponder
from carevoice.api import TokenVerifier
from carevoice.config import Settings
from carevoice.database import DatabaseManager
from carevoice.main import create_app
from carevoice.models import Message
from carevoice.services import (
    ConversationService,
    InMemoryConversationStore,
    SQLConversationStore,
)


# =============================================================================
# Test Doubles
# =============================================================================


class ScriptedResponder(ConversationResponder):
    """
    Responder that replays queued replies.

    Queue AIResponse objects or exceptions; when the queue is empty it
    replies with an echo and no annotations.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.queue: List[Union[AIResponse, Exception]] = []
        self.calls: List[Dict[str, object]] = []
        self.delay = delay

    def push(self, *items: Union[AIResponse, Exception]) -> None:
        self.queue.extend(items)

    async def respond(self, content: str, history: Sequence[Message]) -> AIResponse:
        self.calls.append({"content": content, "history": list(history)})
        if self.delay:
            await asyncio.sleep(self.delay)

        if not self.queue:
            return AIResponse(message=f"echo: {content}")

        item = self.queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class HangingResponder(ConversationResponder):
    """Responder that never answers."""

    async def respond(self, content: str, history: Sequence[Message]) -> AIResponse:
        await asyncio.Event().wait()
        raise AssertionError("unreachable")


class FakeClock:
    """Deterministic clock advanced manually by tests."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime.now(timezone.utc) + timedelta(minutes=1)

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)

    def __call__(self) -> datetime:
        return self.now


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings for an isolated test app."""
    return Settings(
        environment="test",
        store_backend="memory",
        ai_provider="mock",
        jwt_secret="test-secret",
        ai_timeout_seconds=1.0,
        debug=False,
    )


@pytest.fixture
def store() -> InMemoryConversationStore:
    return InMemoryConversationStore()


@pytest.fixture
def responder() -> ScriptedResponder:
    return ScriptedResponder()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(store, responder) -> ConversationService:
    return ConversationService(store=store, responder=responder, ai_timeout_seconds=1.0)


@pytest.fixture
def clocked_service(store, responder, clock) -> ConversationService:
    """Service whose timestamps come from the fake clock."""
    return ConversationService(store=store, responder=responder, ai_timeout_seconds=1.0, clock=clock)


@pytest.fixture
def hanging_service(store) -> ConversationService:
    """Service whose responder never answers, with a short timeout."""
    return ConversationService(store=store, responder=HangingResponder(), ai_timeout_seconds=0.05)


@pytest_asyncio.fixture
async def sql_store(tmp_path) -> AsyncGenerator[SQLConversationStore, None]:
    """SQL store on a temporary SQLite database."""
    database = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'conversations.db'}")
    sql_store = SQLConversationStore(database)
    await sql_store.start()
    yield sql_store
    await sql_store.close()


# =============================================================================
# API Fixtures
# =============================================================================


@pytest.fixture
def app(settings, store, responder) -> FastAPI:
    """Create test FastAPI application."""
    return create_app(settings=settings, store=store, responder=responder)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def token_verifier(settings) -> TokenVerifier:
    return TokenVerifier(settings.jwt_secret, settings.jwt_algorithm)


@pytest.fixture
def auth_headers(token_verifier) -> Callable[[str], Dict[str, str]]:
    """Build Authorization headers for a user id."""

    def _headers(user_id: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token_verifier.create_token(user_id)}"}

    return _headers


# =============================================================================
# Test Data Fixtures
# =============================================================================


@pytest.fixture
def user_id() -> str:
    """Generate a test user ID."""
    return f"usr_{uuid4().hex}"


@pytest.fixture
def other_user_id() -> str:
    """Generate a second, unrelated user ID."""
    return f"usr_{uuid4().hex}"
