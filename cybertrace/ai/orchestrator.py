"""Runs one conversation turn: model steps interleaved with tool calls.

The orchestrator yields a flat stream of turn events. The assistant message
is never mutated piecemeal; it is the result of folding those events, in
order, into an ``AssistantDraft`` with ``fold_event``.
"""

from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterator, Optional, Union

import structlog

from cybertrace.ai.model import (
    ModelClient,
    ModelStepEnd,
    TextDelta,
    ToolCallRequest,
    Usage,
)
from cybertrace.ai.tools.catalogue import ToolCatalogue
from cybertrace.errors import ModelInvocationError
from cybertrace.schemas.chat import (
    ChatMessage,
    Part,
    StepStartPart,
    TextPart,
    ToolInvocation,
    ToolInvocationPart,
)

logger = structlog.get_logger()

DEFAULT_MAX_STEPS = 5


@dataclass(frozen=True)
class StepStarted:
    step: int


@dataclass(frozen=True)
class ToolCallRequested:
    step: int
    tool_call_id: str
    tool_name: str
    args: dict[str, Any]


@dataclass(frozen=True)
class ToolResultReady:
    step: int
    tool_call_id: str
    tool_name: str
    args: dict[str, Any]
    result: Any


@dataclass(frozen=True)
class StepFinished:
    step: int
    finish_reason: str
    usage: Usage = field(default_factory=Usage)
    is_continued: bool = False


@dataclass(frozen=True)
class TurnFinished:
    finish_reason: str
    draft: "AssistantDraft"
    usage: Usage = field(default_factory=Usage)


TurnEvent = Union[
    StepStarted, TextDelta, ToolCallRequested, ToolResultReady, StepFinished, TurnFinished
]


@dataclass(frozen=True)
class AssistantDraft:
    """The assistant message as accumulated so far.

    Parts only ever grow at the end, in arrival order. The single in-place
    change is a tool invocation moving from ``call`` to ``result``.
    """

    parts: tuple[Part, ...] = ()
    finish_reason: Optional[str] = None

    @property
    def text(self) -> str:
        """Text of every step, steps separated by a blank line."""
        steps: list[str] = []
        current = ""
        for part in self.parts:
            if isinstance(part, StepStartPart):
                if current:
                    steps.append(current)
                current = ""
            elif isinstance(part, TextPart):
                current += part.text
        if current:
            steps.append(current)
        return "\n\n".join(steps)

    @property
    def tool_invocations(self) -> list[ToolInvocation]:
        return [p.tool_invocation for p in self.parts if isinstance(p, ToolInvocationPart)]

    @property
    def has_content(self) -> bool:
        return any(not isinstance(p, StepStartPart) for p in self.parts)

    def as_message(self) -> ChatMessage:
        return ChatMessage(role="assistant", content="", parts=list(self.parts))

    def serialized_parts(self) -> list[dict]:
        return [p.model_dump(by_alias=True, exclude_none=True) for p in self.parts]


def fold_event(draft: AssistantDraft, event: TurnEvent) -> AssistantDraft:
    """Apply one turn event to the draft, returning the new draft."""
    if isinstance(event, StepStarted):
        return replace(draft, parts=draft.parts + (StepStartPart(),))

    if isinstance(event, TextDelta):
        if not event.text:
            return draft
        if draft.parts and isinstance(draft.parts[-1], TextPart):
            merged = TextPart(text=draft.parts[-1].text + event.text)
            return replace(draft, parts=draft.parts[:-1] + (merged,))
        return replace(draft, parts=draft.parts + (TextPart(text=event.text),))

    if isinstance(event, ToolCallRequested):
        invocation = ToolInvocation(
            state="call",
            tool_call_id=event.tool_call_id,
            tool_name=event.tool_name,
            args=event.args,
            step=event.step,
        )
        return replace(
            draft, parts=draft.parts + (ToolInvocationPart(tool_invocation=invocation),)
        )

    if isinstance(event, ToolResultReady):
        parts = list(draft.parts)
        for index, part in enumerate(parts):
            if (
                isinstance(part, ToolInvocationPart)
                and part.tool_invocation.tool_call_id == event.tool_call_id
            ):
                resolved = part.tool_invocation.model_copy(
                    update={"state": "result", "result": event.result}
                )
                parts[index] = ToolInvocationPart(tool_invocation=resolved)
                break
        return replace(draft, parts=tuple(parts))

    if isinstance(event, StepFinished):
        return replace(draft, finish_reason=event.finish_reason)

    return draft


class ConversationOrchestrator:
    """Drives the model through up to ``max_steps`` steps for one turn."""

    def __init__(
        self,
        model: ModelClient,
        catalogue: ToolCatalogue,
        system_prompt: str,
        max_steps: int = DEFAULT_MAX_STEPS,
    ):
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self.model = model
        self.catalogue = catalogue
        self.system_prompt = system_prompt
        self.max_steps = max_steps

    async def stream(self, history: list[ChatMessage]) -> AsyncIterator[TurnEvent]:
        """Run the turn, yielding events as they happen.

        Tool calls within a step run one after another in the order the model
        requested them, and all results are in the context before the next
        step. If the last allowed step still asks for tools, those calls are
        left unresolved and the turn ends with ``length``.

        Raises:
            ModelInvocationError: The model call failed.
        """
        draft = AssistantDraft()
        usage = Usage()
        tools = self.catalogue.definitions()

        for step in range(self.max_steps):
            started = StepStarted(step)
            draft = fold_event(draft, started)
            yield started

            context = list(history)
            if draft.has_content:
                context.append(draft.as_message())

            requests: list[ToolCallRequest] = []
            step_end = ModelStepEnd(finish_reason="stop")
            try:
                async for model_event in self.model.stream_step(
                    context, tools, self.system_prompt
                ):
                    if isinstance(model_event, TextDelta):
                        draft = fold_event(draft, model_event)
                        yield model_event
                    elif isinstance(model_event, ToolCallRequest):
                        requests.append(model_event)
                        requested = ToolCallRequested(
                            step=step,
                            tool_call_id=model_event.tool_call_id,
                            tool_name=model_event.tool_name,
                            args=model_event.args,
                        )
                        draft = fold_event(draft, requested)
                        yield requested
                    elif isinstance(model_event, ModelStepEnd):
                        step_end = model_event
            except ModelInvocationError:
                raise
            except Exception as e:
                logger.error("model_stream_failed", step=step, error=str(e))
                raise ModelInvocationError(str(e)) from e

            usage = usage + step_end.usage

            if not requests:
                reason = "length" if step_end.finish_reason == "length" else "stop"
                finished = StepFinished(step, reason, step_end.usage)
                draft = fold_event(draft, finished)
                yield finished
                yield TurnFinished(reason, draft, usage)
                return

            if step == self.max_steps - 1:
                logger.info(
                    "step_budget_exhausted",
                    max_steps=self.max_steps,
                    pending_calls=len(requests),
                )
                finished = StepFinished(step, "length", step_end.usage)
                draft = fold_event(draft, finished)
                yield finished
                yield TurnFinished("length", draft, usage)
                return

            for request in requests:
                result = await self.catalogue.execute(request.tool_name, request.args)
                ready = ToolResultReady(
                    step=step,
                    tool_call_id=request.tool_call_id,
                    tool_name=request.tool_name,
                    args=request.args,
                    result=result,
                )
                draft = fold_event(draft, ready)
                yield ready

            finished = StepFinished(step, "tool-calls", step_end.usage)
            draft = fold_event(draft, finished)
            yield finished
