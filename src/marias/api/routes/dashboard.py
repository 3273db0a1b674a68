"""Aggregated dashboard data."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from marias.api.auth import require_user
from marias.api.routes.inventory import serialize_item
from marias.api.routes.tasks import serialize_task
from marias.db import Repository, get_session

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

_RECENT_LIMIT = 4


@router.get("", dependencies=[Depends(require_user)])
async def dashboard() -> dict:
    """Team size, open tasks and low-stock alerts, plus a few recent items."""
    async with get_session() as s:
        repo = Repository(s)
        team_members = await repo.count_users()
        active_tasks = await repo.count_active_tasks()
        low_stock = await repo.count_low_stock_items()
        recent_tasks = await repo.list_tasks(limit=_RECENT_LIMIT)
        alerts = await repo.list_low_stock_items(limit=_RECENT_LIMIT)
    return {
        "stats": {
            "teamMembers": team_members,
            "activeTasks": active_tasks,
            "inventoryAlerts": low_stock,
        },
        "tasks": [serialize_task(t) for t in recent_tasks],
        "inventory": [serialize_item(i) for i in alerts],
    }
