"""Maintenance commands.

    python -m cybertrace.maintenance backfill-titles
    python -m cybertrace.maintenance issue-session --email ops@example.com
"""

import argparse
import asyncio
import secrets
import sys
from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cybertrace.config import get_settings
from cybertrace.database import get_session_factory, init_db
from cybertrace.logging_config import configure_logging
from cybertrace.models import Chat, Message, User, UserSession
from cybertrace.models.chat import generate_id
from cybertrace.services.chat_store import chat_store
from cybertrace.services.chat_title import should_update_title

logger = structlog.get_logger()


async def backfill_titles(session_factory: async_sessionmaker[AsyncSession]) -> tuple[int, int]:
    """Derive titles for chats still carrying a placeholder.

    Returns:
        Tuple of (chats updated, chats left alone because they have no
        user message).
    """
    updated = skipped = 0
    async with session_factory() as db:
        chats = (await db.execute(select(Chat))).scalars().all()
        for chat in chats:
            if not should_update_title(chat.title):
                continue
            first = (
                await db.execute(
                    select(Message)
                    .where(Message.chat_id == chat.id, Message.role == "user")
                    .order_by(Message.created_at)
                    .limit(1)
                )
            ).scalar_one_or_none()
            if first is None or not first.content.strip():
                skipped += 1
                continue
            if chat_store.apply_derived_title(chat, first.content):
                updated += 1
        await db.commit()

    logger.info("titles_backfilled", updated=updated, skipped=skipped)
    return updated, skipped


async def issue_session(
    session_factory: async_sessionmaker[AsyncSession],
    email: str,
    name: Optional[str] = None,
    days: int = 30,
) -> str:
    """Create a session for the user with this email, creating the user if needed."""
    async with session_factory() as db:
        user = (
            await db.execute(select(User).where(User.email == email))
        ).scalars().first()
        if user is None:
            user = await chat_store.get_or_create_user(db, generate_id(), email, name)

        token = secrets.token_urlsafe(32)
        db.add(
            UserSession(
                session_token=token,
                user_id=user.id,
                expires=datetime.utcnow() + timedelta(days=days),
            )
        )
        await db.commit()

    logger.info("session_issued", user_id=user.id, days=days)
    return token


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cybertrace.maintenance", description="CybertraceAI-Ops maintenance commands"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("backfill-titles", help="Derive titles for placeholder-titled chats")

    issue = commands.add_parser("issue-session", help="Create a login session for local use")
    issue.add_argument("--email", required=True, help="User email")
    issue.add_argument("--name", default=None, help="Display name for a new user")
    issue.add_argument("--days", type=int, default=30, help="Days until the session expires")

    return parser


async def _run(args: argparse.Namespace) -> None:
    await init_db()
    session_factory = get_session_factory()

    if args.command == "backfill-titles":
        updated, skipped = await backfill_titles(session_factory)
        print(f"Updated {updated} chat titles ({skipped} chats without user messages)")
    elif args.command == "issue-session":
        token = await issue_session(session_factory, args.email, args.name, args.days)
        print(token)


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    asyncio.run(_run(args))
    return 0


if __name__ == "__main__":
    sys.exit(main())
