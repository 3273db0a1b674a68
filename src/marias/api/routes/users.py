"""Team member administration."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from marias.api.auth import require_permission
from marias.api.routes.auth import serialize_user
from marias.db import Repository, get_session

router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(require_permission("team"))],
)


class CreateUserRequest(BaseModel):
    username: str = Field(min_length=1, max_length=150)
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    role: str = "Employee"


@router.get("")
async def list_users() -> list[dict]:
    async with get_session() as s:
        users = await Repository(s).list_users()
    return [serialize_user(u) for u in users]


@router.post("", status_code=201)
async def create_user(body: CreateUserRequest) -> dict:
    """Create a team member. The role must exist."""
    async with get_session() as s:
        repo = Repository(s)
        if await repo.get_user_by_username(body.username) is not None:
            raise HTTPException(
                status_code=409, detail=f"Username '{body.username}' is taken"
            )
        if await repo.get_role_by_name(body.role) is None:
            raise HTTPException(status_code=400, detail=f"Unknown role '{body.role}'")
        user = await repo.create_user(
            username=body.username,
            password=body.password,
            name=body.name,
            email=body.email,
            role=body.role,
        )
    return serialize_user(user)
