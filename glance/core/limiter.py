"""
Rate limiting via slowapi (Starlette-compatible Limits wrapper).

Strategy:
  - Dashboard routes: RATE_LIMIT_DASHBOARD per authenticated user
  - Widget ingestion: RATE_LIMIT_INGEST per client IP (the widget is anonymous)
  - Redis backend recommended for multi-instance deployments

Usage in routes:
    @router.get("/analytics")
    @limiter.limit(settings.RATE_LIMIT_DASHBOARD)
    async def get_analytics(request: Request, ...):
        ...
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from glance.core.config import settings


def get_user_key(request: Request) -> str:
    """
    Rate limit key: the auth provider user id when a valid token was seen,
    otherwise the client IP.
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"
    return get_remote_address(request)


# Primary limiter instance: imported across all routers
limiter = Limiter(
    key_func=get_user_key,
    enabled=settings.RATE_LIMIT_ENABLED,
    # For Redis in production:
    # storage_uri="redis://redis:6379",
)
