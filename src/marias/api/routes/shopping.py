"""Shopping list endpoints."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from marias.api.auth import require_permission, require_user
from marias.chat import utc_iso
from marias.db import Repository, ShoppingItem, User, get_session

router = APIRouter(prefix="/shopping", tags=["shopping"])

ShoppingStatus = Literal["pending", "purchased"]


class CreateShoppingRequest(BaseModel):
    name: str = Field(min_length=1)
    category: str = Field(min_length=1)
    quantity: int = Field(1, ge=1)
    unit: str = Field(min_length=1)
    status: ShoppingStatus = "pending"


class UpdateShoppingRequest(BaseModel):
    name: str | None = None
    category: str | None = None
    quantity: int | None = Field(None, ge=1)
    unit: str | None = None
    status: ShoppingStatus | None = None


def serialize_shopping(i: ShoppingItem) -> dict:
    return {
        "id": i.id,
        "name": i.name,
        "category": i.category,
        "quantity": i.quantity,
        "unit": i.unit,
        "status": i.status,
        "createdBy": i.created_by,
        "createdAt": utc_iso(i.created_at),
    }


@router.get("", dependencies=[Depends(require_user)])
async def list_shopping() -> list[dict]:
    async with get_session() as s:
        items = await Repository(s).list_shopping_items()
    return [serialize_shopping(i) for i in items]


@router.post("", status_code=201)
async def create_shopping(
    body: CreateShoppingRequest, user: User = Depends(require_user)
) -> dict:
    """Anyone logged in can add to the list."""
    async with get_session() as s:
        item = await Repository(s).create_shopping_item(
            created_by=user.id, **body.model_dump()
        )
    return serialize_shopping(item)


@router.patch("/{item_id}", dependencies=[Depends(require_permission("inventory"))])
async def update_shopping(item_id: int, body: UpdateShoppingRequest) -> dict:
    async with get_session() as s:
        item = await Repository(s).update_shopping_item(
            item_id, **body.model_dump(exclude_unset=True)
        )
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return serialize_shopping(item)
