"""Bearer token authentication and permission dependencies for the API."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from marias.db import Repository, User, get_session
from marias.permissions import is_allowed

_security = HTTPBearer(auto_error=False)


async def require_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
) -> User:
    """Resolve the bearer token to a logged-in user, else 401."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    async with get_session() as session:
        user = await Repository(session).verify_auth_token(credentials.credentials)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    request.state.token = credentials.credentials
    return user


def require_permission(permission: str):
    """Dependency factory: the current user's role must grant ``permission``."""

    async def _check(user: User = Depends(require_user)) -> User:
        if not await is_allowed(user.role, permission):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return _check
