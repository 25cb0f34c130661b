"""Builders and fakes shared by the test modules."""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from cybertrace.ai.model import ModelStepEnd, TextDelta, ToolCallRequest, Usage
from cybertrace.ai.tools.catalogue import CatalogueEntry
from cybertrace.models import User, UserSession


async def add_user(db: AsyncSession, user_id: str, token: Optional[str] = None) -> User:
    user = User(id=user_id, email=f"{user_id}@example.com", name=user_id.title())
    db.add(user)
    if token:
        db.add(
            UserSession(
                session_token=token,
                user_id=user_id,
                expires=datetime.utcnow() + timedelta(days=1),
            )
        )
    await db.commit()
    return user


def text_step(text: str, finish_reason: str = "stop") -> list:
    """A model step that only produces text."""
    return [TextDelta(text), ModelStepEnd(finish_reason, Usage(10, 5))]


def tool_step(*calls: tuple[str, str, dict], text: str = "") -> list:
    """A model step that asks for tools; ``calls`` are (id, name, args)."""
    events: list = [TextDelta(text)] if text else []
    events += [ToolCallRequest(call_id, name, args) for call_id, name, args in calls]
    events.append(ModelStepEnd("tool-calls", Usage(10, 5)))
    return events


class FakeModel:
    """Replays scripted steps; a step that is an exception is raised instead."""

    def __init__(self, steps: list):
        self.steps = list(steps)
        self.calls: list[dict[str, Any]] = []

    async def stream_step(self, messages, tools, system):
        self.calls.append({"messages": list(messages), "tools": tools, "system": system})
        if not self.steps:
            raise AssertionError("model called more times than scripted")
        step = self.steps.pop(0)
        if isinstance(step, Exception):
            raise step
        for event in step:
            yield event


class StalledModel:
    """A model that never produces output until cancelled."""

    def __init__(self):
        self.started = asyncio.Event()

    async def stream_step(self, messages, tools, system):
        self.started.set()
        await asyncio.Event().wait()
        yield ModelStepEnd("stop", Usage(0, 0))


class FakeToolClient:
    """Stands in for ExternalToolClient and counts how often it is closed."""

    def __init__(self, tools: Optional[dict[str, Any]] = None, available: bool = True):
        self.tools = tools or {}
        self.available = available
        self.close_calls = 0
        self.calls: list[tuple[str, dict]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close_calls += 1

    async def catalogue(self) -> dict[str, CatalogueEntry]:
        if not self.available:
            return {}
        entries = {}
        for name, result in self.tools.items():

            async def executor(args, _name=name, _result=result):
                self.calls.append((_name, args))
                if isinstance(_result, Exception):
                    raise _result
                return _result

            entries[name] = CatalogueEntry(
                name=name,
                description=f"{name} from the tool server",
                input_schema={"type": "object", "properties": {}},
                source="external",
                executor=executor,
            )
        return entries
