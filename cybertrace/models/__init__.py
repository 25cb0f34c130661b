"""Database models."""

from cybertrace.models.user import User, UserSession
from cybertrace.models.chat import Chat, Message, PLACEHOLDER_TITLE

__all__ = [
    "User",
    "UserSession",
    "Chat",
    "Message",
    "PLACEHOLDER_TITLE",
]
