"""Persistence for users, chats and messages.

Maps the orchestrator's input and output onto chat/message rows and decides
which chat a request belongs to.
"""

from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cybertrace.errors import ChatNotFound, PersistenceError
from cybertrace.models import Chat, Message, User, PLACEHOLDER_TITLE
from cybertrace.models.chat import generate_id
from cybertrace.schemas.chat import ChatMessage
from cybertrace.services.chat_title import generate_chat_title, should_update_title

logger = structlog.get_logger()


class ChatStore:
    """Database operations for chats and their messages."""

    async def get_or_create_user(
        self, db: AsyncSession, user_id: str, email: str, name: Optional[str] = None
    ) -> User:
        user = await db.get(User, user_id)
        if user:
            return user
        user = User(id=user_id, email=email, name=name)
        db.add(user)
        await self._commit(db, "create_user")
        logger.info("user_created", user_id=user_id)
        return user

    async def create_chat(
        self,
        db: AsyncSession,
        user_id: str,
        title: Optional[str] = None,
        chat_id: Optional[str] = None,
    ) -> Chat:
        chat = Chat(
            id=chat_id or generate_id(),
            user_id=user_id,
            title=title or PLACEHOLDER_TITLE,
            created_at=datetime.utcnow(),
        )
        db.add(chat)
        await self._commit(db, "create_chat")
        logger.info("chat_created", chat_id=chat.id, user_id=user_id)
        return chat

    async def get_chat(self, db: AsyncSession, chat_id: str, user_id: str) -> Chat:
        """Get a chat owned by the user.

        Raises:
            ChatNotFound: No such chat, or it belongs to someone else.
        """
        chat = await db.get(Chat, chat_id)
        if chat is None or chat.user_id != user_id:
            raise ChatNotFound(chat_id)
        return chat

    async def list_chats(self, db: AsyncSession, user_id: str) -> list[Chat]:
        result = await db.execute(
            select(Chat).where(Chat.user_id == user_id).order_by(Chat.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_chat_messages(self, db: AsyncSession, chat_id: str) -> list[Message]:
        result = await db.execute(
            select(Message).where(Message.chat_id == chat_id).order_by(Message.created_at)
        )
        return list(result.scalars().all())

    async def update_chat_title(
        self, db: AsyncSession, chat_id: str, user_id: str, title: str
    ) -> Chat:
        chat = await self.get_chat(db, chat_id, user_id)
        chat.title = title
        await self._commit(db, "update_chat_title")
        return chat

    async def delete_chat(self, db: AsyncSession, chat_id: str, user_id: str) -> None:
        """Delete a chat and all of its messages."""
        chat = await self.get_chat(db, chat_id, user_id)
        await db.execute(delete(Message).where(Message.chat_id == chat.id))
        await db.delete(chat)
        await self._commit(db, "delete_chat")
        logger.info("chat_deleted", chat_id=chat_id, user_id=user_id)

    async def resolve_chat(
        self, db: AsyncSession, supplied_id: Optional[str], user_id: str
    ) -> Chat:
        """Find the chat a request belongs to, creating one when needed.

        A stale or foreign id never blocks the request: an unknown id gets a
        new chat under that id, and a chat owned by another user is left
        alone while a fresh chat is created for this one.
        """
        if not supplied_id:
            return await self.create_chat(db, user_id)

        existing = await db.get(Chat, supplied_id)
        if existing is None:
            return await self.create_chat(db, user_id, chat_id=supplied_id)
        if existing.user_id != user_id:
            logger.warning(
                "chat_owner_mismatch", chat_id=supplied_id, user_id=user_id
            )
            return await self.create_chat(db, user_id)
        return existing

    async def record_inbound_message(
        self, db: AsyncSession, chat: Chat, messages: list[ChatMessage]
    ) -> Optional[Message]:
        """Store the last message of the history if it came from the user.

        Also replaces a placeholder chat title with one derived from it.
        """
        if not messages or messages[-1].role != "user":
            return None

        inbound = messages[-1]
        message_id = inbound.id or generate_id()
        existing = await db.get(Message, message_id)
        if existing is not None:
            if existing.chat_id == chat.id:
                logger.debug("inbound_message_exists", message_id=message_id)
                return None
            # Id already used in another chat
            message_id = generate_id()

        message = Message(
            id=message_id,
            chat_id=chat.id,
            role="user",
            content=inbound.text(),
            parts=[p.model_dump(by_alias=True, exclude_none=True) for p in inbound.parts],
            attachments=inbound.attachments,
            created_at=datetime.utcnow(),
        )
        db.add(message)
        self.apply_derived_title(chat, message.content)
        await self._commit(db, "record_inbound_message")
        return message

    def apply_derived_title(self, chat: Chat, text: str) -> bool:
        """Replace a placeholder title with one derived from ``text``."""
        if not should_update_title(chat.title):
            return False
        title = generate_chat_title(text)
        if title == chat.title:
            return False
        chat.title = title
        logger.info("chat_title_derived", chat_id=chat.id, title=title)
        return True

    async def record_outbound_message(
        self, db: AsyncSession, chat_id: str, content: str, parts: list[dict]
    ) -> Optional[Message]:
        """Store the finished assistant message.

        The response has already been streamed by now, so a database error is
        logged and swallowed rather than surfaced to the user.
        """
        message = Message(
            id=generate_id(),
            chat_id=chat_id,
            role="assistant",
            content=content,
            parts=parts,
            created_at=datetime.utcnow(),
        )
        try:
            db.add(message)
            await self._commit(db, "record_outbound_message")
        except PersistenceError as e:
            logger.error("outbound_message_not_saved", chat_id=chat_id, error=str(e))
            return None
        return message

    async def _commit(self, db: AsyncSession, operation: str) -> None:
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("database_write_failed", operation=operation, error=str(e))
            raise PersistenceError(f"{operation} failed") from e


chat_store = ChatStore()
