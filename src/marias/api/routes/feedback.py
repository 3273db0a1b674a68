"""Feedback endpoints."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from marias.api.auth import require_permission, require_user
from marias.chat import utc_iso
from marias.db import Feedback, Repository, User, get_session

router = APIRouter(prefix="/feedback", tags=["feedback"])


class CreateFeedbackRequest(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    type: str = Field(min_length=1)
    visibility: Literal["all", "admin"] = "all"


class UpdateFeedbackRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    type: str | None = None
    visibility: Literal["all", "admin"] | None = None
    status: str | None = None


def serialize_feedback(f: Feedback) -> dict:
    return {
        "id": f.id,
        "title": f.title,
        "description": f.description,
        "type": f.type,
        "visibility": f.visibility,
        "status": f.status,
        "submittedBy": f.submitted_by,
        "submittedAt": utc_iso(f.submitted_at),
    }


def visible_to(f: Feedback, user: User) -> bool:
    """Public feedback is visible to everyone, "admin" feedback only to Admins."""
    if f.visibility == "all":
        return True
    return f.visibility == "admin" and user.role == "Admin"


@router.get("")
async def list_feedback(user: User = Depends(require_user)) -> list[dict]:
    async with get_session() as s:
        items = await Repository(s).list_feedback()
    return [serialize_feedback(f) for f in items if visible_to(f, user)]


@router.post("", status_code=201)
async def create_feedback(
    body: CreateFeedbackRequest, user: User = Depends(require_user)
) -> dict:
    async with get_session() as s:
        fb = await Repository(s).create_feedback(submitted_by=user.id, **body.model_dump())
    return serialize_feedback(fb)


@router.patch("/{feedback_id}", dependencies=[Depends(require_permission("feedback"))])
async def update_feedback(feedback_id: int, body: UpdateFeedbackRequest) -> dict:
    async with get_session() as s:
        fb = await Repository(s).update_feedback(
            feedback_id, **body.model_dump(exclude_unset=True)
        )
    if fb is None:
        raise HTTPException(status_code=404, detail="Feedback not found")
    return serialize_feedback(fb)
