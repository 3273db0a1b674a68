"""ChatService running against the real database store."""

from __future__ import annotations

import json

import pytest
from fakes import FakeConnection

from marias.api.registry import ConnectionRegistry
from marias.chat import ChatService, DatabaseChatStore
from marias.db import Repository, close_db, get_session, init_db


@pytest.fixture(autouse=True)
async def db():
    await init_db("sqlite+aiosqlite://")
    async with get_session() as s:
        repo = Repository(s)
        await repo.create_user("ana", "pw123456", "Ana Lima", "ana@example.com")
        await repo.create_user("Bruno", "pw123456", "Bruno Dias", "bruno@example.com")
    yield
    await close_db()


@pytest.fixture
async def db_chat():
    service = ChatService(ConnectionRegistry(), DatabaseChatStore())
    yield service
    await service.shutdown()


async def _open(chat: ChatService, user_id: int) -> FakeConnection:
    conn = FakeConnection()
    chat.open(conn)
    await chat.handle_raw(conn, json.dumps({"type": "auth", "userId": user_id}))
    await chat.flush()
    conn.sent.clear()
    return conn


async def test_resolve_mentions_by_username_then_id():
    store = DatabaseChatStore()
    assert await store.resolve_mentions(["bruno", "ANA", "1", "99", "ghost"]) == [2, 1, 1]


async def test_display_name():
    store = DatabaseChatStore()
    assert await store.display_name(1) == "Ana Lima"
    assert await store.display_name(42) == "user 42"


async def test_message_and_mention_persisted(db_chat):
    ana = await _open(db_chat, 1)
    bruno = await _open(db_chat, 2)

    await db_chat.handle_raw(
        ana,
        json.dumps(
            {"type": "chat_message", "channelId": "general", "content": "oi @bruno"}
        ),
    )
    await db_chat.flush()

    [pushed] = bruno.of_type("new_message")
    assert pushed["message"]["sender"] == 1
    assert pushed["message"]["mentions"] == [2]

    [alert] = bruno.of_type("notification")
    assert alert["notification"]["body"] == "You were mentioned in a message by Ana Lima"
    assert alert["notification"]["link"] == "/chat?channel=general"
    assert ana.of_type("notification") == []

    async with get_session() as s:
        repo = Repository(s)
        [msg] = await repo.list_messages("general")
        [note] = await repo.list_user_notifications(2)
    assert msg.id == pushed["message"]["id"]
    assert Repository.message_mentions(msg) == [2]
    assert note.id == alert["notification"]["id"]
    assert note.read is False


async def test_mention_of_offline_user_only_stored(db_chat):
    ana = await _open(db_chat, 1)
    await db_chat.handle_raw(
        ana,
        json.dumps({"type": "chat_message", "channelId": "general", "content": "@Bruno"}),
    )
    await db_chat.flush()
    async with get_session() as s:
        notes = await Repository(s).list_user_notifications(2)
    assert len(notes) == 1


async def test_resolve_mentions_skips_unusable_numbers():
    store = DatabaseChatStore()
    tokens = ["²", "99999999999999999999999", "0", "2"]
    assert await store.resolve_mentions(tokens) == [2]


@pytest.mark.parametrize("token", ["²", "99999999999999999999999"])
async def test_odd_numeric_mention_is_stored_without_mention(db_chat, token):
    ana = await _open(db_chat, 1)
    await db_chat.handle_raw(
        ana,
        json.dumps(
            {"type": "chat_message", "channelId": "general", "content": f"see @{token}"}
        ),
    )
    await db_chat.flush()

    assert ana.of_type("error") == []
    assert len(ana.of_type("new_message")) == 1
    async with get_session() as s:
        [msg] = await Repository(s).list_messages("general")
    assert Repository.message_mentions(msg) == []
