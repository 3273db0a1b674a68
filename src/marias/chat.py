"""Real-time chat: auth handshake, message ingest, broadcast and mention alerts.

Flow for one connection::

    open -> registry entry (anonymous)
    {"type": "auth", "userId": N}           -> entry bound to N, "auth_success"
    {"type": "chat_message", ...}           -> persist, broadcast "new_message"
                                               to every authenticated connection,
                                               then persist + push a "notification"
                                               for each @mention

Persistence goes through a :class:`ChatStore` so the service can run against
the database or an in-memory fake.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from marias.api.registry import Connection, ConnectionRegistry, RegistryEntry
from marias.db import Repository, get_session
from marias.envelopes import (
    AuthEnvelope,
    ChatMessageEnvelope,
    Envelope,
    MalformedEnvelopeError,
    UnknownEnvelope,
    auth_success_envelope,
    error_envelope,
    new_message_envelope,
    notification_envelope,
    parse_envelope,
)
from marias.mentions import extract_mention_tokens, numeric_user_id, unique_in_order

logger = logging.getLogger(__name__)

MENTION_TITLE = "New Mention"
MENTION_TYPE = "mention"

# Envelopes a connection may have waiting before it is dropped as too slow
OUTBOX_SIZE = 256


class ChatError(Exception):
    """A chat envelope was refused; the message is sent back to the client."""


class NotAuthenticatedError(ChatError):
    def __init__(self) -> None:
        super().__init__("Not authenticated")


class InvalidMessageError(ChatError):
    pass


def utc_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def channel_link(channel_id: str) -> str:
    return f"/chat?channel={channel_id}"


@dataclass(frozen=True)
class PersistedMessage:
    """A stored chat message, detached from any DB session."""

    id: int
    channel_id: str
    sender_id: int
    content: str
    mentions: list[int]
    timestamp: datetime

    def to_wire(self) -> dict:
        return {
            "id": self.id,
            "channelId": self.channel_id,
            "sender": self.sender_id,
            "content": self.content,
            "mentions": list(self.mentions),
            "timestamp": utc_iso(self.timestamp),
        }


@dataclass(frozen=True)
class NotificationRecord:
    """A stored notification, detached from any DB session."""

    id: int
    user_id: int
    title: str
    body: str
    type: str
    link_to: str | None
    read: bool = False

    def to_push(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "type": self.type,
            "link": self.link_to,
        }


@dataclass
class DeliveryFailure:
    user_id: int | None
    error: str


@dataclass
class BroadcastResult:
    """Outcome of pushing one envelope to many connections.

    ``delivered`` counts connections the envelope was queued for; the actual
    socket write happens later on each connection's writer task.
    """

    delivered: int = 0
    failures: list[DeliveryFailure] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.delivered + len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures


class ChatStore(Protocol):
    """Persistence used by the chat service."""

    async def create_message(
        self, channel_id: str, sender_id: int, content: str, mentions: list[int]
    ) -> PersistedMessage: ...

    async def create_notification(
        self, user_id: int, title: str, body: str, type: str, link_to: str | None
    ) -> NotificationRecord: ...

    async def resolve_mentions(self, tokens: list[str]) -> list[int]: ...

    async def display_name(self, user_id: int) -> str: ...


class DatabaseChatStore:
    """ChatStore backed by the SQLAlchemy repository. One session per call."""

    async def create_message(
        self, channel_id: str, sender_id: int, content: str, mentions: list[int]
    ) -> PersistedMessage:
        async with get_session() as s:
            msg = await Repository(s).create_message(
                channel_id, sender_id, content, mentions
            )
            return PersistedMessage(
                id=msg.id,
                channel_id=msg.channel_id,
                sender_id=msg.sender_id,
                content=msg.content,
                mentions=Repository.message_mentions(msg),
                timestamp=msg.timestamp,
            )

    async def create_notification(
        self, user_id: int, title: str, body: str, type: str, link_to: str | None
    ) -> NotificationRecord:
        async with get_session() as s:
            n = await Repository(s).create_notification(
                user_id=user_id, title=title, body=body, type=type, link_to=link_to
            )
            return NotificationRecord(
                id=n.id,
                user_id=n.user_id,
                title=n.title,
                body=n.body,
                type=n.type,
                link_to=n.link_to,
                read=n.read,
            )

    async def resolve_mentions(self, tokens: list[str]) -> list[int]:
        """Username match first (case-insensitive), then a numeric user id."""
        ids = []
        async with get_session() as s:
            repo = Repository(s)
            for token in tokens:
                user = await repo.get_user_by_username(token)
                if user is None:
                    user_id = numeric_user_id(token)
                    if user_id is not None:
                        user = await repo.get_user(user_id)
                if user is not None:
                    ids.append(user.id)
        return ids

    async def display_name(self, user_id: int) -> str:
        async with get_session() as s:
            user = await Repository(s).get_user(user_id)
        return user.name if user is not None else f"user {user_id}"


class ChatService:
    """Processes envelopes for every connection held in ``registry``.

    Outbound envelopes never go straight to a socket. Each connection gets a
    bounded outbox drained by its own writer task, so a slow or stalled
    client cannot hold up delivery to anyone else or the sender's own frame
    loop. A connection whose outbox fills up is dropped.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        store: ChatStore,
        outbox_size: int = OUTBOX_SIZE,
    ) -> None:
        self.registry = registry
        self.store = store
        self.outbox_size = outbox_size

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def open(self, connection: Connection) -> RegistryEntry:
        """Register a connection and start its writer. Needs a running loop."""
        entry = self.registry.register(connection)
        if entry.writer is None:
            entry.outbox = asyncio.Queue(maxsize=self.outbox_size)
            entry.writer = asyncio.create_task(self._write_loop(entry))
        return entry

    def is_open(self, connection: Connection) -> bool:
        return self.registry.get(connection) is not None

    def close(self, connection: Connection) -> None:
        """Unregister a connection and stop its writer. Queued envelopes are dropped."""
        entry = self.registry.get(connection)
        self.registry.remove(connection)
        if entry is None:
            return
        if entry.writer is not None:
            entry.writer.cancel()
        if entry.outbox is not None:
            while not entry.outbox.empty():
                entry.outbox.get_nowait()
                entry.outbox.task_done()

    async def flush(self, *connections: Connection) -> None:
        """Wait until queued envelopes have been handed to their connections.

        With no arguments, waits on every open connection.
        """
        if connections:
            entries = [self.registry.get(c) for c in connections]
        else:
            entries = self.registry.entries()
        for entry in entries:
            if entry is not None and entry.outbox is not None:
                await entry.outbox.join()

    async def shutdown(self) -> None:
        """Close every connection and wait for the writers to stop."""
        writers = [e.writer for e in self.registry.entries() if e.writer is not None]
        for entry in self.registry.entries():
            self.close(entry.connection)
        await asyncio.gather(*writers, return_exceptions=True)

    async def handle_raw(self, connection: Connection, raw: str | bytes) -> None:
        """Handler boundary for one inbound frame. Never raises."""
        entry = self.registry.get(connection)
        if entry is None:
            logger.debug("Frame from unregistered connection ignored")
            return
        try:
            envelope = parse_envelope(raw)
        except MalformedEnvelopeError as exc:
            logger.warning("Malformed envelope: %s", exc)
            self._send(entry, error_envelope(f"Malformed envelope: {exc}"))
            return

        try:
            await self.dispatch(entry, envelope)
        except ChatError as exc:
            self._send(entry, error_envelope(str(exc)))
        except Exception:
            logger.error("Error handling WebSocket envelope", exc_info=True)
            self._send(entry, error_envelope("Internal server error"))

    async def dispatch(self, entry: RegistryEntry, envelope: Envelope) -> None:
        if isinstance(envelope, AuthEnvelope):
            await self.authenticate(entry, envelope.user_id)
        elif isinstance(envelope, ChatMessageEnvelope):
            await self.handle_chat_message(entry, envelope)
        elif isinstance(envelope, UnknownEnvelope):
            raise InvalidMessageError(f"Unknown envelope type: {envelope.type}")
        else:  # pragma: no cover
            raise TypeError(f"Unhandled envelope {envelope!r}")

    # ------------------------------------------------------------------
    # Handshake
    # ------------------------------------------------------------------

    async def authenticate(self, entry: RegistryEntry, user_id: int) -> None:
        """Bind the connection to ``user_id`` as asserted by the client.

        No credentials are checked here; the client is expected to have
        logged in over HTTP first.
        """
        self.registry.authenticate(entry, user_id)
        logger.debug("WebSocket bound to user %s", user_id)
        self._send(entry, auth_success_envelope())

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def handle_chat_message(
        self, entry: RegistryEntry, envelope: ChatMessageEnvelope
    ) -> None:
        message = await self.ingest(entry, envelope.channel_id, envelope.content)
        result = await self.broadcast(message)
        if not result.ok:
            logger.info(
                "Message %s queued for %d of %d connections",
                message.id,
                result.delivered,
                result.attempted,
            )
        # The message is stored and delivered from here on; mention
        # failures are logged, never reported back to the sender.
        await self.dispatch_mentions(message)

    async def ingest(
        self, entry: RegistryEntry, channel_id: str, content: str
    ) -> PersistedMessage:
        """Validate and persist a message from an authenticated connection.

        The sender is always the connection's bound user. Mentions come from
        scanning ``content``; any list the client sent is ignored.
        """
        if not entry.authenticated:
            raise NotAuthenticatedError()
        if not channel_id.strip():
            raise InvalidMessageError("Channel id cannot be empty")
        if not content.strip():
            raise InvalidMessageError("Message content cannot be empty")

        sender_id = entry.user_id
        tokens = extract_mention_tokens(content)
        mentions: list[int] = []
        if tokens:
            mentions = unique_in_order(await self.store.resolve_mentions(tokens))
        return await self.store.create_message(channel_id, sender_id, content, mentions)

    async def broadcast(self, message: PersistedMessage) -> BroadcastResult:
        """Queue ``new_message`` for every authenticated connection.

        Not scoped to channel members. A connection that cannot take the
        envelope is recorded as a failure and the loop moves on.
        """
        envelope = new_message_envelope(message.to_wire())
        return self._push_many(self.registry.authenticated(), envelope)

    async def dispatch_mentions(
        self, message: PersistedMessage
    ) -> list[NotificationRecord]:
        """Persist one notification per mentioned user and push it live.

        Users without an open connection only get the stored row. A failure
        for one mention is logged and the rest are still dispatched.
        """
        if not message.mentions:
            return []
        try:
            sender = await self.store.display_name(message.sender_id)
        except Exception:
            logger.warning(
                "Could not look up sender %s", message.sender_id, exc_info=True
            )
            sender = f"user {message.sender_id}"
        link = channel_link(message.channel_id)

        notifications = []
        for user_id in message.mentions:
            try:
                n = await self.store.create_notification(
                    user_id=user_id,
                    title=MENTION_TITLE,
                    body=f"You were mentioned in a message by {sender}",
                    type=MENTION_TYPE,
                    link_to=link,
                )
            except Exception:
                logger.error(
                    "Mention notification for user %s on message %s failed",
                    user_id,
                    message.id,
                    exc_info=True,
                )
                continue
            notifications.append(n)
            await self.push_notification(n)
        return notifications

    async def push_notification(self, notification: NotificationRecord) -> BroadcastResult:
        """Queue a notification for each open connection of its recipient."""
        targets = self.registry.find_by_user_id(notification.user_id)
        return self._push_many(targets, notification_envelope(notification.to_push()))

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def _push_many(self, entries: list[RegistryEntry], envelope: dict) -> BroadcastResult:
        result = BroadcastResult()
        for entry in entries:
            if not self.registry.is_registered(entry):
                continue
            if self._send(entry, envelope):
                result.delivered += 1
            else:
                result.failures.append(DeliveryFailure(entry.user_id, "outbox full"))
        return result

    def _send(self, entry: RegistryEntry, envelope: dict) -> bool:
        """Queue one envelope. A full outbox drops the connection."""
        if entry.outbox is None:
            return False
        try:
            entry.outbox.put_nowait(envelope)
        except asyncio.QueueFull:
            logger.warning("Dropped slow WebSocket connection (user %s)", entry.user_id)
            self.close(entry.connection)
            return False
        return True

    async def _write_loop(self, entry: RegistryEntry) -> None:
        while True:
            envelope = await entry.outbox.get()
            try:
                await entry.connection.send_json(envelope)
            except Exception:
                logger.debug("Send to user %s failed", entry.user_id, exc_info=True)
            finally:
                entry.outbox.task_done()
