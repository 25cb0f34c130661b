"""Language model boundary.

A model client streams one step at a time: text deltas as they arrive, then
the tool calls the model asked for, then a step end with the finish reason.
Looping over steps and running tools is the orchestrator's job.
"""

import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional, Protocol, Union

import anthropic
import structlog

from cybertrace.config import Settings
from cybertrace.errors import ModelInvocationError
from cybertrace.schemas.chat import ChatMessage, StepStartPart, TextPart, ToolInvocationPart

logger = structlog.get_logger()

STOP_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "tool_use": "tool-calls",
    "max_tokens": "length",
}


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ToolCallRequest:
    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            self.prompt_tokens + other.prompt_tokens,
            self.completion_tokens + other.completion_tokens,
        )


@dataclass(frozen=True)
class ModelStepEnd:
    finish_reason: str
    usage: Usage = field(default_factory=Usage)


ModelEvent = Union[TextDelta, ToolCallRequest, ModelStepEnd]


class ModelClient(Protocol):
    def stream_step(
        self, messages: list[ChatMessage], tools: list[dict], system: str
    ) -> AsyncIterator[ModelEvent]:
        ...


class AnthropicModel:
    """Streams steps from the Anthropic Messages API."""

    def __init__(self, settings: Settings, client: Optional[anthropic.AsyncAnthropic] = None):
        self.settings = settings
        self.model = settings.model_name
        self.client = client
        if self.client is None and settings.model_configured:
            self.client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)

    async def stream_step(
        self, messages: list[ChatMessage], tools: list[dict], system: str
    ) -> AsyncIterator[ModelEvent]:
        if self.client is None:
            raise ModelInvocationError("ANTHROPIC_API_KEY is not configured")

        extra_system, provider_messages = to_provider_messages(messages)
        system_prompt = "\n\n".join([system, *extra_system]) if extra_system else system

        try:
            async with self.client.messages.stream(
                model=self.model,
                max_tokens=self.settings.model_max_tokens,
                temperature=self.settings.model_temperature,
                system=system_prompt,
                tools=tools,
                messages=provider_messages,
            ) as stream:
                async for event in stream:
                    if event.type == "text":
                        yield TextDelta(event.text)
                final = await stream.get_final_message()
        except anthropic.APIError as e:
            logger.error("model_request_failed", model=self.model, error=str(e))
            raise ModelInvocationError(str(e)) from e

        for block in final.content:
            if block.type == "tool_use":
                yield ToolCallRequest(block.id, block.name, dict(block.input or {}))

        yield ModelStepEnd(
            finish_reason=STOP_REASONS.get(final.stop_reason, "other"),
            usage=Usage(final.usage.input_tokens, final.usage.output_tokens),
        )


def to_provider_messages(messages: list[ChatMessage]) -> tuple[list[str], list[dict]]:
    """Convert chat messages to Anthropic format.

    Assistant messages with parts are split at ``step-start`` markers: each
    step becomes an assistant message (text and ``tool_use`` blocks) followed
    by a user message holding the ``tool_result`` blocks. Tool calls that
    never got a result are left out.

    Returns:
        Tuple of (system texts found in the history, provider messages).
    """
    system: list[str] = []
    converted: list[dict] = []

    for message in messages:
        if message.role == "system":
            if message.text():
                system.append(message.text())
            continue

        if message.role == "user" or not message.parts:
            if message.text():
                converted.append({"role": message.role, "content": message.text()})
            continue

        for step in _split_steps(message.parts):
            content: list[dict] = []
            results: list[dict] = []
            for part in step:
                if isinstance(part, TextPart) and part.text:
                    content.append({"type": "text", "text": part.text})
                elif isinstance(part, ToolInvocationPart):
                    invocation = part.tool_invocation
                    if invocation.state != "result":
                        continue
                    content.append({
                        "type": "tool_use",
                        "id": invocation.tool_call_id,
                        "name": invocation.tool_name,
                        "input": invocation.args,
                    })
                    results.append({
                        "type": "tool_result",
                        "tool_use_id": invocation.tool_call_id,
                        "content": _result_text(invocation.result),
                    })
            if content:
                converted.append({"role": "assistant", "content": content})
            if results:
                converted.append({"role": "user", "content": results})

    return system, converted


def _split_steps(parts: list) -> list[list]:
    steps: list[list] = [[]]
    for part in parts:
        if isinstance(part, StepStartPart):
            if steps[-1]:
                steps.append([])
            continue
        steps[-1].append(part)
    return [step for step in steps if step]


def _result_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str)
