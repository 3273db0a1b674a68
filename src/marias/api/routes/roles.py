"""Role and permission administration."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from marias.api.auth import require_permission
from marias.db import Repository, get_session

router = APIRouter(
    prefix="/roles",
    tags=["roles"],
    dependencies=[Depends(require_permission("team"))],
)


class CreateRoleRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    permissions: list[str]


def _serialize_role(r) -> dict:
    return {
        "id": r.id,
        "name": r.name,
        "permissions": Repository.role_permissions(r),
    }


@router.get("")
async def list_roles() -> list[dict]:
    async with get_session() as s:
        roles = await Repository(s).list_roles()
    return [_serialize_role(r) for r in roles]


@router.post("", status_code=201)
async def create_role(body: CreateRoleRequest) -> dict:
    async with get_session() as s:
        repo = Repository(s)
        if await repo.get_role_by_name(body.name) is not None:
            raise HTTPException(status_code=409, detail=f"Role '{body.name}' exists")
        role = await repo.create_role(body.name, body.permissions)
    return _serialize_role(role)
