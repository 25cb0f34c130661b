"""Tests for chat persistence."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import inspect, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from cybertrace.errors import ChatNotFound, PersistenceError
from cybertrace.models import Chat, Message, User, UserSession
from cybertrace.schemas.chat import ChatMessage
from cybertrace.services.chat_store import chat_store


def user_message(text: str, message_id=None) -> ChatMessage:
    return ChatMessage(
        id=message_id,
        role="user",
        content=text,
        parts=[{"type": "text", "text": text}],
    )


async def messages_of(db: AsyncSession, chat_id: str) -> list[Message]:
    return await chat_store.get_chat_messages(db, chat_id)


class TestResolveChat:
    @pytest.mark.asyncio
    async def test_no_id_creates_placeholder_chat(self, db_session: AsyncSession, alice: User):
        """Test a missing chat id creates a chat with the placeholder title."""
        chat = await chat_store.resolve_chat(db_session, None, alice.id)

        assert chat.id
        assert chat.user_id == alice.id
        assert chat.title == "New Chat"
        assert chat.visibility == "private"

    @pytest.mark.asyncio
    async def test_unknown_id_creates_chat_with_that_id(
        self, db_session: AsyncSession, alice: User
    ):
        """Test an unknown chat id is used for the new chat."""
        chat = await chat_store.resolve_chat(db_session, "client-chosen-id", alice.id)

        assert chat.id == "client-chosen-id"
        assert (await db_session.get(Chat, "client-chosen-id")).user_id == alice.id

    @pytest.mark.asyncio
    async def test_own_chat_is_reused(self, db_session: AsyncSession, alice: User):
        """Test the caller's own chat is returned as is."""
        existing = await chat_store.create_chat(db_session, alice.id, title="BGP")

        chat = await chat_store.resolve_chat(db_session, existing.id, alice.id)

        assert chat.id == existing.id
        assert chat.title == "BGP"

    @pytest.mark.asyncio
    async def test_foreign_chat_gets_fresh_chat(
        self, db_session: AsyncSession, alice: User, bob: User
    ):
        """Test another user's chat id yields a fresh chat for the caller."""
        bobs = await chat_store.create_chat(db_session, bob.id, title="Bob's chat")

        chat = await chat_store.resolve_chat(db_session, bobs.id, alice.id)

        assert chat.id != bobs.id
        assert chat.user_id == alice.id
        assert (await db_session.get(Chat, bobs.id)).user_id == bob.id


class TestInboundMessages:
    @pytest.mark.asyncio
    async def test_first_user_message_is_stored_and_titles_chat(
        self, db_session: AsyncSession, alice: User
    ):
        """Test the first user message is stored and names the chat."""
        chat = await chat_store.resolve_chat(db_session, None, alice.id)
        history = [
            user_message(
                "Show me BGP sessions in NotEstd state across namespace suzieq-demo please",
                "m1",
            )
        ]

        stored = await chat_store.record_inbound_message(db_session, chat, history)

        assert stored.id == "m1"
        assert stored.role == "user"
        assert stored.parts == [
            {
                "type": "text",
                "text": "Show me BGP sessions in NotEstd state across namespace suzieq-demo please",
            }
        ]
        assert chat.title == "Show me BGP sessions in NotEstd..."
        assert [m.id for m in await messages_of(db_session, chat.id)] == ["m1"]

    @pytest.mark.asyncio
    async def test_history_ending_with_assistant_is_noop(
        self, db_session: AsyncSession, alice: User
    ):
        """Test nothing is stored when the last message is not from the user."""
        chat = await chat_store.create_chat(db_session, alice.id)
        history = [
            user_message("hi", "m1"),
            ChatMessage(id="m2", role="assistant", content="hello"),
        ]

        assert await chat_store.record_inbound_message(db_session, chat, history) is None
        assert await messages_of(db_session, chat.id) == []
        assert chat.title == "New Chat"

    @pytest.mark.asyncio
    async def test_resent_message_is_stored_once(self, db_session: AsyncSession, alice: User):
        """Test a message sent twice to the same chat is stored once."""
        chat = await chat_store.create_chat(db_session, alice.id)
        history = [user_message("Show devices", "m1")]

        await chat_store.record_inbound_message(db_session, chat, history)
        assert await chat_store.record_inbound_message(db_session, chat, history) is None

        assert len(await messages_of(db_session, chat.id)) == 1

    @pytest.mark.asyncio
    async def test_id_taken_in_another_chat_is_stored_under_new_id(
        self, db_session: AsyncSession, alice: User, bob: User
    ):
        """Test a message id already used in another chat does not drop the message."""
        alices = await chat_store.create_chat(db_session, alice.id)
        await chat_store.record_inbound_message(
            db_session, alices, [user_message("Show devices", "m1")]
        )
        bobs = await chat_store.create_chat(db_session, bob.id)

        stored = await chat_store.record_inbound_message(
            db_session, bobs, [user_message("Which interfaces flapped?", "m1")]
        )

        assert stored is not None
        assert stored.id != "m1"
        assert stored.chat_id == bobs.id
        assert bobs.title == "Which interfaces flapped?"
        [original] = await messages_of(db_session, alices.id)
        assert original.id == "m1"
        assert original.content == "Show devices"
        assert [m.content for m in await messages_of(db_session, bobs.id)] == [
            "Which interfaces flapped?"
        ]

    @pytest.mark.asyncio
    async def test_message_without_id_gets_one(self, db_session: AsyncSession, alice: User):
        """Test a message without id is given one."""
        chat = await chat_store.create_chat(db_session, alice.id)

        stored = await chat_store.record_inbound_message(
            db_session, chat, [user_message("Show devices")]
        )

        assert stored.id

    @pytest.mark.asyncio
    async def test_custom_title_is_not_replaced(self, db_session: AsyncSession, alice: User):
        """Test a user-chosen title survives the first message."""
        chat = await chat_store.create_chat(db_session, alice.id, title="Fabric audit")

        await chat_store.record_inbound_message(
            db_session, chat, [user_message("Show devices", "m1")]
        )

        assert chat.title == "Fabric audit"

    @pytest.mark.asyncio
    async def test_text_parts_used_when_content_empty(
        self, db_session: AsyncSession, alice: User
    ):
        """Test message text falls back to its text parts."""
        chat = await chat_store.create_chat(db_session, alice.id)
        message = ChatMessage(
            id="m1", role="user", content="", parts=[{"type": "text", "text": "List VLANs"}]
        )

        stored = await chat_store.record_inbound_message(db_session, chat, [message])

        assert stored.content == "List VLANs"
        assert chat.title == "List VLANs"


class TestOutboundMessages:
    @pytest.mark.asyncio
    async def test_assistant_message_is_stored(self, db_session: AsyncSession, alice: User):
        """Test the assistant message is stored with its parts."""
        chat = await chat_store.create_chat(db_session, alice.id)
        parts = [{"type": "step-start"}, {"type": "text", "text": "All good."}]

        stored = await chat_store.record_outbound_message(db_session, chat.id, "All good.", parts)

        assert stored.role == "assistant"
        saved = (await messages_of(db_session, chat.id))[0]
        assert saved.parts == parts
        assert saved.content == "All good."

    @pytest.mark.asyncio
    async def test_database_error_is_logged_not_raised(self):
        """Test a failed assistant write does not raise."""
        db = MagicMock()
        db.commit = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("disk full")))
        db.rollback = AsyncMock()

        result = await chat_store.record_outbound_message(db, "chat-1", "text", [])

        assert result is None
        db.rollback.assert_awaited_once()


class TestChatCrud:
    @pytest.mark.asyncio
    async def test_list_only_own_chats_newest_first(
        self, db_session: AsyncSession, alice: User, bob: User
    ):
        """Test listing returns only the caller's chats, newest first."""
        first = await chat_store.create_chat(db_session, alice.id, title="first")
        second = await chat_store.create_chat(db_session, alice.id, title="second")
        await chat_store.create_chat(db_session, bob.id, title="bob")

        chats = await chat_store.list_chats(db_session, alice.id)

        assert [c.id for c in chats] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_get_foreign_chat_raises(self, db_session: AsyncSession, alice: User, bob: User):
        """Test reading another user's chat raises ChatNotFound."""
        bobs = await chat_store.create_chat(db_session, bob.id)

        with pytest.raises(ChatNotFound):
            await chat_store.get_chat(db_session, bobs.id, alice.id)

    @pytest.mark.asyncio
    async def test_update_title(self, db_session: AsyncSession, alice: User):
        """Test renaming a chat."""
        chat = await chat_store.create_chat(db_session, alice.id)

        updated = await chat_store.update_chat_title(db_session, chat.id, alice.id, "Renamed")

        assert updated.title == "Renamed"

    @pytest.mark.asyncio
    async def test_delete_removes_messages(self, db_session: AsyncSession, alice: User):
        """Test deleting a chat removes its messages."""
        chat = await chat_store.create_chat(db_session, alice.id)
        await chat_store.record_inbound_message(db_session, chat, [user_message("hi", "m1")])

        await chat_store.delete_chat(db_session, chat.id, alice.id)

        assert await db_session.get(Chat, chat.id) is None
        remaining = (await db_session.execute(select(Message))).scalars().all()
        assert remaining == []

    def test_relationships_use_supported_loaders(self):
        """Test relationships only use loader strategies SQLAlchemy still supports."""
        for model in (Chat, Message, User, UserSession):
            for relationship in inspect(model).relationships:
                assert relationship.lazy in ("select", "selectin"), relationship

    @pytest.mark.asyncio
    async def test_commit_failure_raises_persistence_error(self):
        """Test a failed commit surfaces as PersistenceError."""
        db = MagicMock()
        db.commit = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("locked")))
        db.rollback = AsyncMock()

        with pytest.raises(PersistenceError):
            await chat_store.create_chat(db, "alice")

    @pytest.mark.asyncio
    async def test_get_or_create_user(self, db_session: AsyncSession):
        """Test a user is created once and then reused."""
        created = await chat_store.get_or_create_user(db_session, "carol", "carol@example.com")
        again = await chat_store.get_or_create_user(db_session, "carol", "other@example.com")

        assert created.id == again.id == "carol"
        assert again.email == "carol@example.com"
