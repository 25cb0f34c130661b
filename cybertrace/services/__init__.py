"""Chat services."""

from cybertrace.services.chat_store import ChatStore, chat_store
from cybertrace.services.chat_title import generate_chat_title, should_update_title

__all__ = [
    "ChatStore",
    "chat_store",
    "generate_chat_title",
    "should_update_title",
]
