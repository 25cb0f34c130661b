"""User and session models.

Rows are written by the identity provider's adapter; the chat service only
reads them to resolve who owns a chat.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cybertrace.database import Base


class User(Base):
    """Authenticated user."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[str] = mapped_column(String(255), index=True)
    email_verified: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    image: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    chats: Mapped[list["Chat"]] = relationship(back_populates="user", lazy="select")


class UserSession(Base):
    """Database-backed login session."""

    __tablename__ = "sessions"

    session_token: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    expires: Mapped[datetime] = mapped_column(DateTime)

    user: Mapped["User"] = relationship(lazy="selectin")


# Import at bottom to avoid circular imports
from cybertrace.models.chat import Chat
