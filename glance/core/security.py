"""
Security core: auth-provider JWT validation and workspace RBAC.

Architecture:
  - Access tokens are issued by the hosted auth provider (HS256, aud="authenticated")
  - This service never mints tokens; it verifies signature, expiry and audience
  - Authorization is per workspace: the caller must hold a workspace_members row
  - Every workspace role may read analytics; permissions are checked per role
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from glance.core.config import settings
from glance.core.database import get_db
from glance.core.errors import Forbidden, MissingParameter, Unauthorized
from glance.core.logging import get_logger
from glance.models.workspace import WorkspaceMember, WorkspaceRole
from glance.services.workspace_service import get_membership

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


# ── Permissions ────────────────────────────────────────────────────────────────
class Permission(str, Enum):
    VIEW_ANALYTICS = "analytics:view"


ROLE_PERMISSIONS: dict[WorkspaceRole, set[Permission]] = {
    WorkspaceRole.MEMBER: {Permission.VIEW_ANALYTICS},
    WorkspaceRole.ADMIN: {Permission.VIEW_ANALYTICS},
    WorkspaceRole.OWNER: {Permission.VIEW_ANALYTICS},
}


def has_permission(role: WorkspaceRole, permission: Permission) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, set())


# ── Token schema ───────────────────────────────────────────────────────────────
class TokenPayload(BaseModel):
    sub: str                 # auth provider user id
    email: str | None = None
    role: str = "authenticated"
    exp: datetime
    iat: datetime | None = None


def decode_token(token: str) -> TokenPayload:
    """Decode and validate an auth-provider JWT. Raises Unauthorized on any failure."""
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE,
        )
        return TokenPayload(**payload)

    except ExpiredSignatureError:
        logger.warning("auth.token_expired")
        raise Unauthorized("Token has expired")
    except JWTError as e:
        logger.warning("auth.token_invalid", error=str(e))
        raise Unauthorized("Invalid token")


# ── FastAPI dependencies ───────────────────────────────────────────────────────
async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> TokenPayload:
    """
    Dependency: validates the Bearer token and returns the decoded payload.
    Inject this into any dashboard route that requires authentication.
    """
    if credentials is None:
        raise Unauthorized()
    return decode_token(credentials.credentials)


@dataclass
class WorkspaceAccess:
    workspace_id: str
    user: TokenPayload
    membership: WorkspaceMember


def require_workspace_permission(permission: Permission):
    """
    Dependency factory: resolves `workspace_id` from the query string and
    checks that the caller is a member whose role grants `permission`.

    Usage:
        @router.get("/analytics")
        async def analytics(access = Depends(require_workspace_permission(Permission.VIEW_ANALYTICS))):
            ...
    """
    async def _check(
        workspace_id: str | None = Query(default=None),
        current_user: TokenPayload = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> WorkspaceAccess:
        if not workspace_id:
            raise MissingParameter("workspace_id")

        membership = await get_membership(db, workspace_id, current_user.sub)
        if membership is None:
            logger.warning(
                "auth.workspace_access_denied",
                user_id=current_user.sub,
                workspace_id=workspace_id,
            )
            raise Forbidden("Not a member of this workspace")

        if not has_permission(membership.role, permission):
            logger.warning(
                "auth.permission_denied",
                user_id=current_user.sub,
                workspace_id=workspace_id,
                workspace_role=membership.role.value,
                required_permission=permission.value,
            )
            raise Forbidden(f"Permission '{permission.value}' required")

        return WorkspaceAccess(
            workspace_id=workspace_id, user=current_user, membership=membership
        )

    return _check
