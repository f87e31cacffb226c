from __future__ import annotations

import asyncio
import json

import pytest

from fakes import FakeFeedClient

from chatrelay.chat.base_client import ChatMessage
from chatrelay.chat.client_factory import ChatClientFactory
from chatrelay.chat.pump_client import PumpChatClient


def _client() -> tuple[PumpChatClient, list[ChatMessage], list[str]]:
    received: list[ChatMessage] = []
    reasons: list[str] = []
    client = PumpChatClient("mint-123", on_message=received.append, on_disconnect=reasons.append)
    return client, received, reasons


def test_new_message_dict_is_dispatched() -> None:
    client, received, _ = _client()
    asyncio.run(client._on_chat_message({
        "username": "alice",
        "message": "hello there",
        "userAddress": "So1addr",
        "timestamp": 1_700_000_000_000,
    }))

    assert len(received) == 1
    msg = received[0]
    assert (msg.user, msg.message, msg.room_id, msg.platform) == ("alice", "hello there", "mint-123", "pump")
    assert msg.user_address == "So1addr"
    assert msg.timestamp.year == 2023


def test_new_message_json_string_is_parsed() -> None:
    client, received, _ = _client()
    asyncio.run(client._on_chat_message(json.dumps({"username": "bob", "message": "gm"})))
    assert [m.message for m in received] == ["gm"]


def test_payload_without_required_fields_is_dropped() -> None:
    client, received, _ = _client()
    for payload in (
        {"username": "alice"},
        {"message": "no author"},
        {"username": "alice", "message": 42},
        {"username": " ", "message": "hi"},
        "not json",
        ["list"],
    ):
        asyncio.run(client._on_chat_message(payload))
    assert received == []


def test_disconnect_reported_unless_closing() -> None:
    client, _, reasons = _client()
    asyncio.run(client._on_disconnect("transport close"))
    assert reasons == ["transport close"]
    assert client.is_connected is False

    asyncio.run(client.disconnect())
    asyncio.run(client._on_disconnect("client disconnect"))
    assert reasons == ["transport close"]


def test_factory_creates_pump_client() -> None:
    client = ChatClientFactory.create("pump", "mint-9", username="relay")
    assert isinstance(client, PumpChatClient)
    assert client.room_id == "mint-9"
    assert client.username == "relay"
    assert "pump" in ChatClientFactory.get_supported_platforms()


def test_factory_rejects_unknown_platform_and_registers_new_one() -> None:
    with pytest.raises(ValueError):
        ChatClientFactory.create("nowhere", "mint-1")
    with pytest.raises(TypeError):
        ChatClientFactory.register_platform("bad", dict)

    ChatClientFactory.register_platform("Fake", FakeFeedClient)
    try:
        assert isinstance(ChatClientFactory.create("FAKE", "mint-1"), FakeFeedClient)
    finally:
        ChatClientFactory._platforms.pop("fake", None)
