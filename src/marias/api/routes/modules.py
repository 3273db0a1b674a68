"""Module registry endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from marias.api.auth import require_permission, require_user
from marias.chat import utc_iso
from marias.db import Module, Repository, User, get_session

router = APIRouter(prefix="/modules", tags=["modules"])

_config_perm = require_permission("configuration")


class RegisterModuleRequest(BaseModel):
    id: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1)
    dependencies: list[str] = []
    permissions: list[str] = []
    active: bool = True


class UpdateModuleRequest(BaseModel):
    name: str | None = None
    dependencies: list[str] | None = None
    permissions: list[str] | None = None
    active: bool | None = None


def serialize_module(m: Module) -> dict:
    return {
        "id": m.id,
        "name": m.name,
        "dependencies": Repository.module_list(m, "dependencies"),
        "permissions": Repository.module_list(m, "permissions"),
        "active": m.active,
        "registeredAt": utc_iso(m.registered_at),
        "registeredBy": m.registered_by,
    }


@router.get("", dependencies=[Depends(require_user)])
async def list_modules() -> list[dict]:
    async with get_session() as s:
        modules = await Repository(s).list_modules()
    return [serialize_module(m) for m in modules]


@router.post("", status_code=201)
async def register_module(
    body: RegisterModuleRequest, user: User = Depends(_config_perm)
) -> dict:
    async with get_session() as s:
        repo = Repository(s)
        if await repo.get_module(body.id) is not None:
            raise HTTPException(
                status_code=409, detail=f"Module '{body.id}' is registered"
            )
        module = await repo.create_module(registered_by=user.id, **body.model_dump())
    return serialize_module(module)


@router.patch("/{module_id}", dependencies=[Depends(_config_perm)])
async def update_module(module_id: str, body: UpdateModuleRequest) -> dict:
    """Toggle ``active`` or change a module's metadata."""
    async with get_session() as s:
        module = await Repository(s).update_module(
            module_id, **body.model_dump(exclude_unset=True)
        )
    if module is None:
        raise HTTPException(status_code=404, detail="Module not found")
    return serialize_module(module)
