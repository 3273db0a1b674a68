"""Chat channels and message history."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from marias.api.auth import require_permission
from marias.chat import utc_iso
from marias.db import Channel, Message, Repository, User, get_session

_chat_perm = require_permission("chat")

router = APIRouter(prefix="/channels", tags=["chat"])


class CreateChannelRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    type: Literal["channel", "direct"] = "channel"
    participants: list[int] = []


def _serialize_channel(c: Channel) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "type": c.type,
        "participants": Repository.channel_participants(c),
        "createdBy": c.created_by,
        "createdAt": utc_iso(c.created_at),
    }


def _serialize_message(m: Message) -> dict:
    # Same shape as the "new_message" WebSocket payload
    return {
        "id": m.id,
        "channelId": m.channel_id,
        "sender": m.sender_id,
        "content": m.content,
        "mentions": Repository.message_mentions(m),
        "timestamp": utc_iso(m.timestamp),
    }


@router.get("", dependencies=[Depends(_chat_perm)])
async def list_channels() -> list[dict]:
    async with get_session() as s:
        channels = await Repository(s).list_channels()
    return [_serialize_channel(c) for c in channels]


@router.post("", status_code=201)
async def create_channel(
    body: CreateChannelRequest, user: User = Depends(_chat_perm)
) -> dict:
    async with get_session() as s:
        channel = await Repository(s).create_channel(
            name=body.name,
            created_by=user.id,
            type=body.type,
            participants=body.participants,
        )
    return _serialize_channel(channel)


@router.get("/{channel_id}/messages", dependencies=[Depends(_chat_perm)])
async def list_messages(
    channel_id: str,
    limit: int = Query(100, ge=1, le=500),
) -> list[dict]:
    """Channel history, oldest first."""
    async with get_session() as s:
        msgs = await Repository(s).list_messages(channel_id, limit=limit)
    return [_serialize_message(m) for m in msgs]
