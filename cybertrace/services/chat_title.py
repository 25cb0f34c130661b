"""Derive short chat titles from the first user message."""

from typing import Optional

from cybertrace.models.chat import PLACEHOLDER_TITLE

MAX_VERBATIM_LENGTH = 40

# Checked in order; the first whose position falls inside the window wins
BREAK_MARKERS = (". ", "? ", "! ", ", ", "; ", " - ", " and ", " with ", " for ")
BREAK_WINDOW = (16, 35)

GENERIC_TITLES = frozenset({"New Chat", "new chat", "Chat", "chat"})


def generate_chat_title(message: Optional[str]) -> str:
    """Generate a meaningful chat title from the user's first message.

    Short messages are used as-is. Longer ones are cut at the first natural
    break (sentence end, comma, conjunction) that lands between 16 and 35
    characters, otherwise at the last word boundary before 35 characters
    with an ellipsis appended.
    """
    if not message or not message.strip():
        return PLACEHOLDER_TITLE

    clean = message.strip()
    if len(clean) <= MAX_VERBATIM_LENGTH:
        return clean

    low, high = BREAK_WINDOW
    for marker in BREAK_MARKERS:
        index = clean.find(marker)
        if low <= index <= high:
            return clean[:index]

    cut = high
    for i in range(high, 14, -1):
        if clean[i] == " ":
            cut = i
            break

    return clean[:cut].strip() + "..."


def should_update_title(title: Optional[str]) -> bool:
    """True if the title is still a placeholder that should be replaced."""
    if title is None or not title.strip():
        return True
    return title in GENERIC_TITLES
