"""Streaming chat endpoint."""

from functools import lru_cache

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cybertrace.ai.mcp_client import ExternalToolClient
from cybertrace.ai.model import AnthropicModel, ModelClient
from cybertrace.auth import get_current_user
from cybertrace.config import Settings, get_settings
from cybertrace.database import get_db, get_session_factory
from cybertrace.errors import ModelInvocationError
from cybertrace.models import User
from cybertrace.schemas.chat import ChatRequest
from cybertrace.services.chat_store import chat_store
from cybertrace.services.chat_turn import ToolClientFactory, TurnStream, run_chat_turn

logger = structlog.get_logger()

router = APIRouter(prefix="/chat", tags=["chat"])

DATA_STREAM_HEADERS = {"X-Vercel-AI-Data-Stream": "v1"}


@lru_cache
def get_model_client() -> ModelClient:
    """Shared model client."""
    return AnthropicModel(get_settings())


def get_tool_client_factory(settings: Settings = Depends(get_settings)) -> ToolClientFactory:
    """Factory for a per-turn tool server connection."""
    return lambda: ExternalToolClient(settings)


@router.post("")
async def chat(
    body: ChatRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    model: ModelClient = Depends(get_model_client),
    tool_client_factory: ToolClientFactory = Depends(get_tool_client_factory),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse:
    """Run one conversation turn and stream it in the AI SDK data stream format.

    The chat is resolved (or created) and the user's message stored before
    the model is called. The assistant message is stored once the turn
    finishes.
    """
    chat = await chat_store.resolve_chat(db, body.id, user.id)
    await chat_store.record_inbound_message(db, chat, body.messages)

    stream = TurnStream(
        run_chat_turn(
            chat_id=chat.id,
            history=body.messages,
            model=model,
            tool_client_factory=tool_client_factory,
            session_factory=session_factory,
            max_steps=settings.max_steps,
        )
    )
    try:
        await stream.start()
    except ModelInvocationError as e:
        logger.error("chat_turn_failed", chat_id=chat.id, error=str(e))
        raise HTTPException(status_code=500, detail="An error occurred while processing your request.")

    headers = {**DATA_STREAM_HEADERS, "X-Chat-Id": chat.id}
    return StreamingResponse(
        stream.encoded(), media_type="text/plain; charset=utf-8", headers=headers
    )
