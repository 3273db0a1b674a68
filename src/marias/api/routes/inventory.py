"""Inventory endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from marias.api.auth import require_permission, require_user
from marias.chat import utc_iso
from marias.db import InventoryCount, InventoryItem, Repository, User, get_session

router = APIRouter(prefix="/inventory", tags=["inventory"])


class CreateItemRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    category: str = Field(min_length=1)
    quantity: int = Field(0, ge=0)
    min_quantity: int = Field(5, ge=0, alias="minQuantity")
    max_quantity: int = Field(ge=0, alias="maxQuantity")
    unit: str = Field(min_length=1)


class UpdateItemRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = None
    category: str | None = None
    quantity: int | None = Field(None, ge=0)
    min_quantity: int | None = Field(None, ge=0, alias="minQuantity")
    max_quantity: int | None = Field(None, ge=0, alias="maxQuantity")
    unit: str | None = None


class CreateCountRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items_checked: int = Field(ge=0, alias="itemsChecked")
    notes: str | None = None


def serialize_item(i: InventoryItem) -> dict:
    return {
        "id": i.id,
        "name": i.name,
        "category": i.category,
        "quantity": i.quantity,
        "minQuantity": i.min_quantity,
        "maxQuantity": i.max_quantity,
        "unit": i.unit,
        "lowStock": i.is_low_stock,
    }


@router.get("", dependencies=[Depends(require_user)])
async def list_items() -> list[dict]:
    async with get_session() as s:
        items = await Repository(s).list_inventory_items()
    return [serialize_item(i) for i in items]


@router.post(
    "", status_code=201, dependencies=[Depends(require_permission("inventory"))]
)
async def create_item(body: CreateItemRequest) -> dict:
    async with get_session() as s:
        item = await Repository(s).create_inventory_item(**body.model_dump())
    return serialize_item(item)


@router.patch("/{item_id}", dependencies=[Depends(require_permission("inventory"))])
async def update_item(item_id: int, body: UpdateItemRequest) -> dict:
    """Partial update; only the fields sent are changed."""
    async with get_session() as s:
        item = await Repository(s).update_inventory_item(
            item_id, **body.model_dump(exclude_unset=True)
        )
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return serialize_item(item)


def serialize_count(c: InventoryCount) -> dict:
    return {
        "id": c.id,
        "date": utc_iso(c.date),
        "userId": c.user_id,
        "itemsChecked": c.items_checked,
        "notes": c.notes,
    }


@router.get("/counts", dependencies=[Depends(require_user)])
async def list_counts() -> list[dict]:
    async with get_session() as s:
        counts = await Repository(s).list_inventory_counts()
    return [serialize_count(c) for c in counts]


@router.post("/counts", status_code=201)
async def create_count(
    body: CreateCountRequest, user: User = Depends(require_permission("inventory"))
) -> dict:
    """Record a stock-take by the current user."""
    async with get_session() as s:
        count = await Repository(s).create_inventory_count(
            user_id=user.id, **body.model_dump()
        )
    return serialize_count(count)
