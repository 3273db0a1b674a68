"""Notification inbox for the current user."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from marias.api.auth import require_user
from marias.chat import utc_iso
from marias.db import Notification, Repository, User, get_session

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _serialize_notification(n: Notification) -> dict:
    return {
        "id": n.id,
        "userId": n.user_id,
        "title": n.title,
        "body": n.body,
        "type": n.type,
        "read": n.read,
        "linkTo": n.link_to,
        "createdAt": utc_iso(n.created_at),
    }


@router.get("")
async def list_notifications(
    user: User = Depends(require_user),
    limit: int = Query(100, ge=1, le=500),
) -> list[dict]:
    """Own notifications, newest first."""
    async with get_session() as s:
        items = await Repository(s).list_user_notifications(user.id, limit=limit)
    return [_serialize_notification(n) for n in items]


@router.post("/read/{notification_id}")
async def mark_read(notification_id: int, user: User = Depends(require_user)) -> dict:
    async with get_session() as s:
        n = await Repository(s).mark_notification_read(notification_id, user_id=user.id)
    if n is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return _serialize_notification(n)
