"""Task management endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from marias.api.auth import require_permission
from marias.chat import utc_iso
from marias.db import Repository, Task, User, get_session

router = APIRouter(prefix="/tasks", tags=["tasks"])

_tasks_perm = require_permission("tasks")


class CreateTaskRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1)
    description: str = ""
    status: str = "todo"
    priority: str = "medium"
    assignee: int | None = None
    due_date: datetime | None = Field(None, alias="dueDate")


class UpdateTaskRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    description: str | None = None
    status: str | None = None
    priority: str | None = None
    assignee: int | None = None
    due_date: datetime | None = Field(None, alias="dueDate")


def serialize_task(t: Task) -> dict:
    return {
        "id": t.id,
        "title": t.title,
        "description": t.description,
        "status": t.status,
        "priority": t.priority,
        "assignee": t.assignee,
        "createdBy": t.created_by,
        "createdAt": utc_iso(t.created_at),
        "dueDate": utc_iso(t.due_date) if t.due_date else None,
    }


@router.get("", dependencies=[Depends(_tasks_perm)])
async def list_tasks() -> list[dict]:
    async with get_session() as s:
        tasks = await Repository(s).list_tasks()
    return [serialize_task(t) for t in tasks]


@router.post("", status_code=201)
async def create_task(body: CreateTaskRequest, user: User = Depends(_tasks_perm)) -> dict:
    """Create a task owned by the current user."""
    async with get_session() as s:
        task = await Repository(s).create_task(created_by=user.id, **body.model_dump())
    return serialize_task(task)


@router.patch("/{task_id}", dependencies=[Depends(_tasks_perm)])
async def update_task(task_id: int, body: UpdateTaskRequest) -> dict:
    async with get_session() as s:
        task = await Repository(s).update_task(
            task_id, **body.model_dump(exclude_unset=True)
        )
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return serialize_task(task)
