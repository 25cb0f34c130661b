"""One chat turn from merged tool catalogue to persisted assistant message."""

import asyncio
from contextlib import AbstractAsyncContextManager, aclosing
from typing import AsyncIterator, Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cybertrace.ai.data_stream import encode_error, encode_event
from cybertrace.ai.mcp_client import ExternalToolClient
from cybertrace.ai.model import ModelClient
from cybertrace.ai.orchestrator import (
    ConversationOrchestrator,
    StepStarted,
    TurnEvent,
    TurnFinished,
)
from cybertrace.ai.prompts import SYSTEM_PROMPT
from cybertrace.ai.tools import LOCAL_TOOLS, ToolCatalogue
from cybertrace.models.chat import generate_id
from cybertrace.schemas.chat import ChatMessage
from cybertrace.services.chat_store import chat_store

logger = structlog.get_logger()

ToolClientFactory = Callable[[], AbstractAsyncContextManager[ExternalToolClient]]

PERSISTED_FINISH_REASONS = ("stop", "length")


async def run_chat_turn(
    *,
    chat_id: str,
    history: list[ChatMessage],
    model: ModelClient,
    tool_client_factory: ToolClientFactory,
    session_factory: async_sessionmaker[AsyncSession],
    max_steps: int,
    system_prompt: str = SYSTEM_PROMPT,
) -> AsyncIterator[TurnEvent]:
    """Run a turn and yield its events.

    The tool server connection is opened here and closed when this generator
    exits, whether the turn finished, the model failed, or the consumer went
    away.
    """
    async with tool_client_factory() as tool_client:
        external = await tool_client.catalogue()
        catalogue = ToolCatalogue.build(LOCAL_TOOLS, external)
        logger.info(
            "turn_started",
            chat_id=chat_id,
            tools=catalogue.names,
            tool_server=tool_client.available,
        )

        orchestrator = ConversationOrchestrator(model, catalogue, system_prompt, max_steps)
        async for event in orchestrator.stream(history):
            if isinstance(event, TurnFinished):
                await _persist_outbound(session_factory, chat_id, event)
            yield event

        logger.info("turn_finished", chat_id=chat_id)


async def _persist_outbound(
    session_factory: async_sessionmaker[AsyncSession], chat_id: str, event: TurnFinished
) -> None:
    if event.finish_reason not in PERSISTED_FINISH_REASONS:
        return
    async with session_factory() as db:
        await chat_store.record_outbound_message(
            db, chat_id, event.draft.text, event.draft.serialized_parts()
        )


class _Failure:
    def __init__(self, error: BaseException):
        self.error = error


_DONE = object()


class TurnStream:
    """Runs a turn generator in its own task and hands events over a queue.

    The tool server transport must be entered and exited by the same task,
    while the HTTP response is written from another; the queue decouples the
    two.
    """

    def __init__(self, events: AsyncIterator[TurnEvent]):
        self.message_id = generate_id()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._buffer: list[TurnEvent] = []
        self._task = asyncio.create_task(self._pump(events))

    async def _pump(self, events: AsyncIterator[TurnEvent]) -> None:
        try:
            async with aclosing(events) as stream:
                async for event in stream:
                    await self._queue.put(event)
        except Exception as e:
            await self._queue.put(_Failure(e))
        finally:
            await self._queue.put(_DONE)

    async def _next(self):
        if self._buffer:
            return self._buffer.pop(0)
        item = await self._queue.get()
        if isinstance(item, _Failure):
            raise item.error
        return item

    async def start(self) -> None:
        """Wait for the model's first output.

        If this raises or is cancelled, the turn is torn down first.

        Raises:
            Exception: Whatever ended the turn before the model produced
                anything (typically ``ModelInvocationError``).
        """
        try:
            while True:
                item = await self._queue.get()
                if isinstance(item, _Failure):
                    raise item.error
                self._buffer.append(item)
                if item is _DONE or not isinstance(item, StepStarted):
                    return
        except BaseException:
            await self.aclose()
            raise

    async def events(self) -> AsyncIterator[TurnEvent]:
        while True:
            item = await self._next()
            if item is _DONE:
                return
            yield item

    async def encoded(self) -> AsyncIterator[str]:
        """Data stream lines for the response body."""
        try:
            async for event in self.events():
                yield encode_event(event, self.message_id)
        except Exception as e:
            logger.error("turn_failed_mid_stream", error=str(e))
            yield encode_error()
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if not self._task.done():
            self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
