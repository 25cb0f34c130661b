"""Encode turn events in the AI SDK data stream protocol.

Each event becomes one line ``<code>:<json>\n``; the ``useChat`` client
rebuilds the assistant message (text, tool calls, tool results) from them.
"""

import json
from typing import Any

from cybertrace.ai.model import TextDelta, Usage
from cybertrace.ai.orchestrator import (
    StepFinished,
    StepStarted,
    ToolCallRequested,
    ToolResultReady,
    TurnEvent,
    TurnFinished,
)

ERROR_MESSAGE = "An error occurred."


def _line(code: str, value: Any) -> str:
    return f"{code}:{json.dumps(value, separators=(',', ':'), default=str)}\n"


def _usage(usage: Usage) -> dict:
    return {
        "promptTokens": usage.prompt_tokens,
        "completionTokens": usage.completion_tokens,
    }


def encode_event(event: TurnEvent, message_id: str) -> str:
    if isinstance(event, StepStarted):
        return _line("f", {"messageId": message_id})
    if isinstance(event, TextDelta):
        return _line("0", event.text)
    if isinstance(event, ToolCallRequested):
        return _line(
            "9",
            {"toolCallId": event.tool_call_id, "toolName": event.tool_name, "args": event.args},
        )
    if isinstance(event, ToolResultReady):
        return _line("a", {"toolCallId": event.tool_call_id, "result": event.result})
    if isinstance(event, StepFinished):
        return _line(
            "e",
            {
                "finishReason": event.finish_reason,
                "usage": _usage(event.usage),
                "isContinued": event.is_continued,
            },
        )
    if isinstance(event, TurnFinished):
        return _line("d", {"finishReason": event.finish_reason, "usage": _usage(event.usage)})
    raise TypeError(f"Cannot encode {type(event).__name__}")


def encode_error(message: str = ERROR_MESSAGE) -> str:
    return _line("3", message)
