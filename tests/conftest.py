"""Shared test fixtures."""

from __future__ import annotations

import pytest
from fakes import FakeChatStore

from marias.api.registry import ConnectionRegistry
from marias.chat import ChatService


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def store() -> FakeChatStore:
    """Fake store knowing four users; davi deliberately has id 7."""
    return FakeChatStore(users={"ana": 1, "bruno": 2, "carla": 3, "davi": 7})


@pytest.fixture
async def chat(registry: ConnectionRegistry, store: FakeChatStore):
    """ChatService over the fakes; writer tasks are stopped afterwards."""
    service = ChatService(registry, store)
    yield service
    await service.shutdown()
