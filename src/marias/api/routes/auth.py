"""Login, logout and current-user endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from marias.api.auth import require_user
from marias.db import Repository, User, get_session
from marias.security import generate_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


def serialize_user(u: User) -> dict:
    """Public user fields; never includes the password hash."""
    return {
        "id": u.id,
        "username": u.username,
        "name": u.name,
        "email": u.email,
        "role": u.role,
        "status": u.status,
    }


@router.post("/login")
async def login(body: LoginRequest, request: Request) -> dict:
    """Exchange username/password for a bearer token."""
    if not body.username or not body.password:
        raise HTTPException(status_code=400, detail="Username and password are required")

    ttl_days = request.app.state.config.token_ttl_days
    token = generate_token()
    async with get_session() as s:
        repo = Repository(s)
        user = await repo.authenticate_user(body.username, body.password)
        if user is not None:
            await repo.create_auth_token(user.id, token, ttl_days)
    if user is None:
        logger.info("Failed login for %r", body.username)
        raise HTTPException(status_code=401, detail="Invalid username or password")
    return {"token": token, "user": serialize_user(user)}


@router.get("/me")
async def me(user: User = Depends(require_user)) -> dict:
    return serialize_user(user)


@router.post("/logout")
async def logout(request: Request, user: User = Depends(require_user)) -> dict:
    """Revoke the token used for this request."""
    async with get_session() as s:
        await Repository(s).delete_auth_token(request.state.token)
    return {"message": "Logged out"}
