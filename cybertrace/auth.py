"""Session authentication.

Sessions are issued by the identity provider and stored in the ``sessions``
table; a request carries the token as a bearer token or in the session
cookie.
"""

from datetime import datetime
from typing import Optional

import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cybertrace.config import Settings, get_settings
from cybertrace.database import get_db
from cybertrace.errors import Unauthorized
from cybertrace.models import User, UserSession

logger = structlog.get_logger()


def session_token_from_request(request: Request, cookie_name: str) -> Optional[str]:
    """Get the session token from the Authorization header or the cookie."""
    authorization = request.headers.get("Authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return request.cookies.get(cookie_name) or None


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """Dependency resolving the signed-in user.

    Raises:
        Unauthorized: Missing, unknown or expired session token.
    """
    token = session_token_from_request(request, settings.session_cookie_name)
    if not token:
        raise Unauthorized("No session token")

    session = await db.get(UserSession, token)
    if session is None or session.expires <= datetime.utcnow():
        logger.info("session_rejected", path=request.url.path)
        raise Unauthorized("Invalid or expired session")

    return session.user
