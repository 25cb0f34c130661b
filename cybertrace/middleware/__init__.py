"""Middleware components."""

from cybertrace.middleware.rate_limit import RateLimitMiddleware, RateLimitRule, RateLimitStore

__all__ = ["RateLimitMiddleware", "RateLimitRule", "RateLimitStore"]
