from __future__ import annotations

import asyncio
import json
from pathlib import Path

import httpx
import pytest

import fakes  # noqa: F401

from chatrelay.ai.models import ChatTurn
from chatrelay.ai.relay_client import RelayClient, RelayError, parse_reply


def relay_body(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _client(tmp_path: Path, handler) -> RelayClient:
    return RelayClient(
        character_path=tmp_path / "character.txt",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


def test_reply_posts_chat_history_and_parses_content(tmp_path: Path) -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json=relay_body('{"content": "Hi alice!", "emotion": "Happy"}'))

    client = _client(tmp_path, handler)
    turns = [ChatTurn("bob", "yo"), ChatTurn("alice", "hello there")]

    result = asyncio.run(client.reply("http://fwd.local/", turns))

    assert result.content == "Hi alice!"
    assert result.emotion == "happy"
    assert captured["url"] == "http://fwd.local/ai-api"
    body = captured["body"]
    assert set(body) == {"systemInstruction", "contents", "generationConfig"}
    assert json.loads(body["contents"][0]["parts"][0]["text"]) == [
        {"name": "bob", "chat message": "yo"},
        {"name": "alice", "chat message": "hello there"},
    ]


def test_character_prompt_is_prepended(tmp_path: Path) -> None:
    path = tmp_path / "character.txt"
    path.write_text("You are Choco.", encoding="utf-8")
    client = RelayClient(character_path=path)

    instruction = client.build_request([])["systemInstruction"]["parts"][0]["text"]
    assert instruction.startswith("You are Choco.\n\n")


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(429, json={"error": "rate limited"}),
        httpx.Response(200, content=b"<html>oops</html>"),
        httpx.Response(200, json={"unexpected": True}),
        httpx.Response(200, json=relay_body("not json at all")),
        httpx.Response(200, json=relay_body('{"emotion": "sad"}')),
    ],
)
def test_protocol_errors_raise_relay_error(tmp_path: Path, response: httpx.Response) -> None:
    client = _client(tmp_path, lambda request: response)
    with pytest.raises(RelayError):
        asyncio.run(client.reply("http://fwd.local", [ChatTurn("alice", "hello there")]))


def test_network_error_and_timeout_raise_relay_error(tmp_path: Path) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    def hang(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    for handler in (refuse, hang):
        client = _client(tmp_path, handler)
        with pytest.raises(RelayError):
            asyncio.run(client.reply("http://fwd.local", [ChatTurn("alice", "hello there")]))


def test_parse_reply_tolerates_code_fence_and_missing_emotion() -> None:
    result = parse_reply(relay_body('```json\n{"content": "hey"}\n```'))
    assert result.content == "hey"
    assert result.emotion == "neutral"


def test_non_positive_timeout_falls_back_to_default() -> None:
    assert RelayClient(timeout=0).timeout == 30.0


def test_malformed_forwarder_url_raises_relay_error(tmp_path: Path) -> None:
    client = _client(tmp_path, lambda request: httpx.Response(200, json=relay_body('{"content": "x"}')))
    with pytest.raises(RelayError):
        asyncio.run(client.reply("http://[::1", [ChatTurn("alice", "hello there")]))
