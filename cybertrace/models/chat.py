"""Chat and message models."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cybertrace.database import Base

PLACEHOLDER_TITLE = "New Chat"


def generate_id() -> str:
    return str(uuid.uuid4())


class Chat(Base):
    """A conversation owned by one user."""

    __tablename__ = "chats"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(String(255), ForeignKey("users.id"), index=True)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=PLACEHOLDER_TITLE)
    visibility: Mapped[str] = mapped_column(String(20), default="private")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    user: Mapped["User"] = relationship(back_populates="chats", lazy="select")
    messages: Mapped[list["Message"]] = relationship(
        back_populates="chat",
        lazy="select",
        order_by="Message.created_at",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Message(Base):
    """A single message; never updated once stored."""

    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    chat_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("chats.id", ondelete="CASCADE"), index=True
    )
    role: Mapped[str] = mapped_column(String(20))
    content: Mapped[str] = mapped_column(Text, default="")
    # Ordered text / step-start / tool-invocation parts, AI SDK wire format
    parts: Mapped[list] = mapped_column(JSON, default=list)
    attachments: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    chat: Mapped["Chat"] = relationship(back_populates="messages", lazy="select")


# Import at bottom to avoid circular imports
from cybertrace.models.user import User
