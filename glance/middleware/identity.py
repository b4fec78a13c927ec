"""
Identity middleware: copies auth-provider JWT claims into request.state.

This runs before route handlers so that:
  1. AuditLogMiddleware can log user context on every request
  2. The rate limiter can key dashboard limits on the user via get_user_key()

Note: This middleware does NOT enforce authentication. That is done by the
      get_current_user dependency in individual routes.
"""

from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from glance.core.config import settings


class IdentityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.user_id = None
        request.state.user_email = None

        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            try:
                payload = jwt.decode(
                    auth_header[7:],
                    settings.AUTH_JWT_SECRET,
                    algorithms=[settings.AUTH_JWT_ALGORITHM],
                    audience=settings.AUTH_JWT_AUDIENCE,
                )
                request.state.user_id = payload.get("sub")
                request.state.user_email = payload.get("email")
            except JWTError:
                # Route dependencies reject the token with a proper 401
                pass

        return await call_next(request)
