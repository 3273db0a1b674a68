"""WebSocket envelope types and JSON (de)serialization.

Inbound envelopes are parsed into one of a closed set of dataclasses;
anything with an unrecognised ``type`` becomes :class:`UnknownEnvelope`
so the dispatcher can answer it explicitly. Outbound envelopes are built
by the ``*_envelope`` helpers and are plain JSON-ready dicts.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union


# User ids are SQL INTEGER primary keys: positive and within a signed 64-bit range
MAX_USER_ID = 2**63 - 1


class MalformedEnvelopeError(ValueError):
    """Payload is not JSON, not an object, or lacks a required field."""


@dataclass(frozen=True)
class AuthEnvelope:
    user_id: int


@dataclass(frozen=True)
class ChatMessageEnvelope:
    channel_id: str
    content: str
    # Client-supplied mention ids. Parsed but not trusted, see ChatService.ingest
    mentions: tuple[int, ...] = ()


@dataclass(frozen=True)
class UnknownEnvelope:
    type: str


Envelope = Union[AuthEnvelope, ChatMessageEnvelope, UnknownEnvelope]


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_valid_user_id(value: Any) -> bool:
    return _is_int(value) and 0 < value <= MAX_USER_ID


def _parse_auth(data: dict) -> AuthEnvelope:
    user_id = data.get("userId")
    if not _is_int(user_id):
        raise MalformedEnvelopeError("auth envelope requires an integer 'userId'")
    if not is_valid_user_id(user_id):
        raise MalformedEnvelopeError(f"'userId' out of range: {user_id}")
    return AuthEnvelope(user_id=user_id)


def _parse_chat_message(data: dict) -> ChatMessageEnvelope:
    channel_id = data.get("channelId")
    content = data.get("content")
    if not isinstance(channel_id, str):
        raise MalformedEnvelopeError("chat_message requires a string 'channelId'")
    if not isinstance(content, str):
        raise MalformedEnvelopeError("chat_message requires a string 'content'")
    mentions = data.get("mentions", [])
    if mentions is None:
        mentions = []
    if not isinstance(mentions, list) or not all(_is_int(m) for m in mentions):
        raise MalformedEnvelopeError("'mentions' must be a list of integers")
    return ChatMessageEnvelope(
        channel_id=channel_id, content=content, mentions=tuple(mentions)
    )


_PARSERS = {
    "auth": _parse_auth,
    "chat_message": _parse_chat_message,
}


def parse_envelope(raw: str | bytes) -> Envelope:
    """Decode one inbound frame into a typed envelope.

    Raises:
        MalformedEnvelopeError: if the frame cannot be decoded or a known
            envelope type is missing required fields.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedEnvelopeError(f"Invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedEnvelopeError("Envelope must be a JSON object")
    kind = data.get("type")
    if not isinstance(kind, str):
        raise MalformedEnvelopeError("Envelope requires a string 'type'")
    parser = _PARSERS.get(kind)
    if parser is None:
        return UnknownEnvelope(type=kind)
    return parser(data)


# ------------------------------------------------------------------
# Outbound
# ------------------------------------------------------------------


def auth_success_envelope() -> dict:
    return {"type": "auth_success"}


def error_envelope(message: str) -> dict:
    return {"type": "error", "message": message}


def new_message_envelope(message: dict) -> dict:
    return {"type": "new_message", "message": message}


def notification_envelope(notification: dict) -> dict:
    return {"type": "notification", "notification": notification}
