"""
Unit Tests for the In-Memory Conversation Store

Tests for creation, owner scoping, ordering and version checks.
"""

from datetime import timedelta

import pytest

from carevoice.config import Settings
from carevoice.errors import ConflictError, ErrorCode, NotFoundError
from carevoice.models import Message
from carevoice.services import InMemoryConversationStore, SQLConversationStore, create_store


class TestCreate:
    """Tests for conversation creation."""

    @pytest.mark.asyncio
    async def test_default_title(self, store, user_id):
        """Test that a missing or blank title falls back to the default."""
        untitled = await store.create(user_id)
        blank = await store.create(user_id, "   ")

        assert untitled.title == "New Conversation"
        assert blank.title == "New Conversation"

    @pytest.mark.asyncio
    async def test_custom_default_title(self, user_id):
        """Test a configured default title."""
        store = InMemoryConversationStore(default_title="Untitled")
        conversation = await store.create(user_id)
        assert conversation.title == "Untitled"

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, store, user_id):
        """Test that every conversation gets a fresh id."""
        ids = {(await store.create(user_id)).id for _ in range(20)}
        assert len(ids) == 20

    @pytest.mark.asyncio
    async def test_initial_state(self, store, user_id):
        """Test a freshly created conversation."""
        conversation = await store.create(user_id, "Interview prep")

        assert conversation.title == "Interview prep"
        assert conversation.messages == []
        assert conversation.metadata.created == conversation.metadata.updated
        assert conversation.metadata.duration is None
        assert conversation.metadata.sentiment is None
        assert conversation.metadata.intents == []


class TestOwnership:
    """Tests for owner scoping."""

    @pytest.mark.asyncio
    async def test_get_wrong_owner(self, store, user_id, other_user_id):
        """Test that another user's conversation reads as not found."""
        conversation = await store.create(user_id)

        with pytest.raises(NotFoundError):
            await store.get_by_owner_and_id(other_user_id, conversation.id)

    @pytest.mark.asyncio
    async def test_list_empty_for_new_owner(self, store, user_id, other_user_id):
        """Test that a user with no conversations sees an empty list."""
        await store.create(user_id)
        assert await store.list_by_owner(other_user_id) == []


class TestIsolation:
    """Tests that loaded copies are independent of stored state."""

    @pytest.mark.asyncio
    async def test_unsaved_edits_invisible(self, store, user_id):
        """Test that mutating a loaded conversation does not leak."""
        conversation = await store.create(user_id)
        loaded = await store.get_by_owner_and_id(user_id, conversation.id)
        loaded.messages.append(Message(role="user", content="draft"))

        fresh = await store.get_by_owner_and_id(user_id, conversation.id)
        assert fresh.messages == []


class TestListing:
    """Tests for list_by_owner."""

    @pytest.mark.asyncio
    async def test_most_recently_updated_first(self, store, user_id):
        """Test listing order."""
        older = await store.create(user_id, "Older")
        newer = await store.create(user_id, "Newer")

        touched = await store.get_by_owner_and_id(user_id, older.id)
        touched.metadata.updated = newer.metadata.updated + timedelta(seconds=5)
        await store.save(touched)

        summaries = await store.list_by_owner(user_id)
        assert [s.title for s in summaries] == ["Older", "Newer"]

    @pytest.mark.asyncio
    async def test_summaries_omit_messages(self, store, user_id):
        """Test that summaries carry metadata but no messages."""
        conversation = await store.create(user_id)
        summaries = await store.list_by_owner(user_id)

        assert "messages" not in summaries[0].model_dump()
        assert summaries[0].metadata.created == conversation.metadata.created


class TestSave:
    """Tests for versioned saves."""

    @pytest.mark.asyncio
    async def test_save_bumps_version(self, store, user_id):
        """Test that each save advances the version."""
        conversation = await store.create(user_id)
        loaded = await store.get_by_owner_and_id(user_id, conversation.id)

        await store.save(loaded)

        assert loaded.version == 1
        reloaded = await store.get_by_owner_and_id(user_id, conversation.id)
        assert reloaded.version == 1

    @pytest.mark.asyncio
    async def test_stale_save_conflicts(self, store, user_id):
        """Test that the second writer of a stale copy is rejected."""
        conversation = await store.create(user_id)
        first = await store.get_by_owner_and_id(user_id, conversation.id)
        second = await store.get_by_owner_and_id(user_id, conversation.id)

        first.messages.append(Message(role="user", content="first"))
        await store.save(first)

        second.messages.append(Message(role="user", content="second"))
        with pytest.raises(ConflictError) as exc_info:
            await store.save(second)

        assert exc_info.value.code == ErrorCode.CONFLICT
        assert exc_info.value.status_code == 409
        stored = await store.get_by_owner_and_id(user_id, conversation.id)
        assert [m.content for m in stored.messages] == ["first"]

    @pytest.mark.asyncio
    async def test_save_unknown(self, store, user_id):
        """Test saving a conversation the store never created."""
        conversation = await store.create(user_id)
        loaded = await store.get_by_owner_and_id(user_id, conversation.id)
        loaded.id = "unknown"

        with pytest.raises(NotFoundError):
            await store.save(loaded)


class TestCreateStore:
    """Tests for backend selection."""

    def test_memory_backend(self):
        """Test selecting the in-memory store."""
        store = create_store(Settings(store_backend="memory"))
        assert isinstance(store, InMemoryConversationStore)

    def test_sql_backend(self, tmp_path):
        """Test selecting the SQL store."""
        store = create_store(
            Settings(
                store_backend="sql",
                database_url=f"sqlite+aiosqlite:///{tmp_path / 'x.db'}",
                default_title="Chat",
            )
        )
        assert isinstance(store, SQLConversationStore)
        assert store.default_title == "Chat"
