"""Versioned system configuration (theme and similar settings).

Every key holds an arbitrary JSON value. Overwriting a key keeps the old
value in its history, readable newest first.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from marias.api.auth import require_permission
from marias.chat import utc_iso
from marias.db import ConfigHistory, Repository, SystemConfig, User, get_session

router = APIRouter(prefix="/config", tags=["config"])

_config_perm = require_permission("configuration")


class SetConfigRequest(BaseModel):
    value: Any = None


def serialize_config(c: SystemConfig) -> dict:
    return {
        "id": c.id,
        "key": c.key,
        "value": Repository.config_value(c),
        "lastUpdated": utc_iso(c.last_updated),
        "updatedBy": c.updated_by,
    }


def json_or_none(raw: str | None):
    return json.loads(raw) if raw is not None else None


def serialize_history(h: ConfigHistory) -> dict:
    return {
        "id": h.id,
        "configKey": h.config_key,
        "previousValue": json_or_none(h.previous_value),
        "newValue": json_or_none(h.new_value),
        "changes": json_or_none(h.changes) or [],
        "updatedBy": h.updated_by,
        "timestamp": utc_iso(h.timestamp),
    }


@router.get("/{key}", dependencies=[Depends(_config_perm)])
async def get_config(key: str) -> dict:
    async with get_session() as s:
        config = await Repository(s).get_system_config(key)
    if config is None:
        raise HTTPException(status_code=404, detail="Configuration not found")
    return serialize_config(config)


@router.put("/{key}")
async def set_config(
    key: str, body: SetConfigRequest, user: User = Depends(_config_perm)
) -> dict:
    if body.value is None:
        raise HTTPException(status_code=400, detail="Value is required")
    async with get_session() as s:
        config = await Repository(s).set_system_config(key, body.value, user.id)
    return serialize_config(config)


@router.get("/{key}/history", dependencies=[Depends(_config_perm)])
async def config_history(key: str) -> list[dict]:
    async with get_session() as s:
        history = await Repository(s).list_config_history(key)
    return [serialize_history(h) for h in history]
