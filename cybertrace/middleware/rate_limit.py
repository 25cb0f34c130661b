"""Per-client rate limiting for the chat routes.

Fixed windows counted in memory, so limits are per process.
"""

import re
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from cybertrace.config import get_settings

logger = structlog.get_logger()

EXEMPT_PATHS = ("/health",)


@dataclass
class RateLimitRule:
    """At most ``requests`` per ``window_seconds`` on paths matching ``path_pattern``."""

    requests: int
    window_seconds: int
    path_pattern: str

    def __post_init__(self):
        self._compiled = re.compile(self.path_pattern)

    def matches(self, path: str) -> bool:
        return self._compiled.match(path) is not None


@dataclass
class Window:
    count: int = 0
    started: float = 0.0


class RateLimitStore:
    """Request counters keyed by (client, rule pattern)."""

    def __init__(self, cleanup_interval: int = 60):
        self._windows: dict[tuple[str, str], Window] = defaultdict(Window)
        self._last_cleanup = time.time()
        self._cleanup_interval = cleanup_interval

    def __len__(self) -> int:
        return len(self._windows)

    def clear(self) -> None:
        self._windows.clear()

    def _cleanup(self, now: float, max_age: int) -> None:
        if now - self._last_cleanup < self._cleanup_interval:
            return
        expired = [key for key, w in self._windows.items() if now - w.started > max_age]
        for key in expired:
            del self._windows[key]
        self._last_cleanup = now

    def hit(self, client_id: str, rule: RateLimitRule) -> tuple[bool, int, int]:
        """Count one request.

        Returns:
            Tuple of (allowed, remaining, reset) where ``reset`` is the unix
            time the current window ends.
        """
        now = time.time()
        self._cleanup(now, rule.window_seconds * 2)

        window = self._windows[(client_id, rule.path_pattern)]
        if now - window.started >= rule.window_seconds:
            window.count = 0
            window.started = now

        reset = int(window.started + rule.window_seconds)
        if window.count >= rule.requests:
            return False, 0, reset

        window.count += 1
        return True, max(0, rule.requests - window.count), reset


# Shared by every middleware built without an explicit store
rate_limit_store = RateLimitStore()


def default_rules() -> list[RateLimitRule]:
    # Matches /chat and /chats
    return [
        RateLimitRule(
            requests=get_settings().chat_rate_limit,
            window_seconds=60,
            path_pattern=r"^/chats?(/|$)",
        )
    ]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rejects clients over their limit with 429 and ``X-RateLimit-*`` headers.

    Clients are identified by forwarded or peer IP. Credentials are not
    validated here, so they never pick the bucket. Paths no rule matches are
    not limited.
    """

    def __init__(
        self,
        app,
        rules: Optional[list[RateLimitRule]] = None,
        store: Optional[RateLimitStore] = None,
    ):
        super().__init__(app)
        self.rules = rules if rules is not None else default_rules()
        self.store = store if store is not None else rate_limit_store

    def _client_id(self, request: Request) -> str:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return f"ip:{forwarded_for.split(',')[0].strip()}"
        if request.client:
            return f"ip:{request.client.host}"
        return "ip:unknown"

    def _rule_for(self, path: str) -> Optional[RateLimitRule]:
        for rule in self.rules:
            if rule.matches(path):
                return rule
        return None

    @staticmethod
    def _with_headers(response: Response, limit: int, remaining: int, reset: int) -> Response:
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(reset)
        return response

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        rule = None if path in EXEMPT_PATHS else self._rule_for(path)
        if rule is None:
            return await call_next(request)

        client_id = self._client_id(request)
        allowed, remaining, reset = self.store.hit(client_id, rule)

        if not allowed:
            retry_after = max(0, reset - int(time.time()))
            logger.warning("rate_limited", path=path, retry_after=retry_after)
            response = JSONResponse(
                status_code=429,
                content={
                    "detail": "Rate limit exceeded. Please try again later.",
                    "retry_after": retry_after,
                },
            )
            response.headers["Retry-After"] = str(retry_after)
            return self._with_headers(response, rule.requests, remaining, reset)

        response = await call_next(request)
        return self._with_headers(response, rule.requests, remaining, reset)
