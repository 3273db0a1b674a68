"""Health and status endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Request
from sqlalchemy import func, select

from marias.db import get_session
from marias.db.models import Message, Notification, Task, User

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health(request: Request) -> dict:
    """Liveness, WebSocket connection counts and DB row counts. No auth."""
    db_stats: dict = {}
    try:
        async with get_session() as s:
            for model, key in [
                (User, "users"),
                (Task, "tasks"),
                (Message, "messages"),
                (Notification, "notifications"),
            ]:
                result = await s.execute(select(func.count()).select_from(model))
                db_stats[key] = result.scalar()
    except Exception as e:
        db_stats = {"error": str(e)}

    return {
        "status": "ok" if "error" not in db_stats else "degraded",
        "websocket": request.app.state.registry.stats(),
        "db_stats": db_stats,
    }
