"""Routes for listing and managing a user's chats."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from cybertrace.auth import get_current_user
from cybertrace.database import get_db
from cybertrace.errors import ChatNotFound
from cybertrace.models import User
from cybertrace.schemas.chat import (
    ChatCreate,
    ChatDetailResponse,
    ChatResponse,
    ChatUpdate,
    MessageResponse,
)
from cybertrace.services.chat_store import chat_store

router = APIRouter(prefix="/chats", tags=["chats"])


@router.get("", response_model=list[ChatResponse])
async def list_chats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get the user's chats, newest first."""
    return await chat_store.list_chats(db, user.id)


@router.post("", response_model=ChatResponse, status_code=201)
async def create_chat(
    body: ChatCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await chat_store.create_chat(db, user.id, title=body.title)


@router.get("/{chat_id}", response_model=ChatDetailResponse)
async def get_chat(
    chat_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get a chat with its messages in order."""
    try:
        chat = await chat_store.get_chat(db, chat_id, user.id)
    except ChatNotFound:
        raise HTTPException(status_code=404, detail="Chat not found")

    messages = await chat_store.get_chat_messages(db, chat.id)
    return ChatDetailResponse(
        **ChatResponse.model_validate(chat).model_dump(),
        messages=[MessageResponse.model_validate(m) for m in messages],
    )


@router.patch("/{chat_id}", response_model=ChatResponse)
async def update_chat(
    chat_id: str,
    body: ChatUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await chat_store.update_chat_title(db, chat_id, user.id, body.title)
    except ChatNotFound:
        raise HTTPException(status_code=404, detail="Chat not found")


@router.delete("/{chat_id}")
async def delete_chat(
    chat_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete a chat and its messages."""
    try:
        await chat_store.delete_chat(db, chat_id, user.id)
    except ChatNotFound:
        raise HTTPException(status_code=404, detail="Chat not found")
    return {"success": True}
