from __future__ import annotations

import json
from pathlib import Path

from fastapi.testclient import TestClient

from fakes import FakeFeedClient, FakeRelay, FakeTTS

from chatrelay.ai.forwarder_registry import ForwarderRegistry
from chatrelay.overlay.broadcaster import BroadcastSink
from chatrelay.overlay.server import create_app
from chatrelay.pipeline.session import SessionController
from chatrelay.utils.config import RelayConfig


def _app(tmp_path: Path, fail_connect: bool = False):
    path = tmp_path / "forwarders.json"
    path.write_text(
        json.dumps([
            {"url": "http://fwd-a", "isUsageLimited": False, "selected": True},
            {"url": "http://fwd-b", "isUsageLimited": True, "selected": False},
        ]),
        encoding="utf-8",
    )
    controller = SessionController(
        config=RelayConfig(),
        registry=ForwarderRegistry(path),
        relay=FakeRelay(),
        tts=FakeTTS(),
        sink=BroadcastSink(),
        client_builder=lambda room_id: FakeFeedClient(room_id, fail_connect=fail_connect),
    )
    return controller, create_app(controller)


def test_forwarder_endpoints(tmp_path: Path) -> None:
    controller, app = _app(tmp_path)
    with TestClient(app) as client:
        listed = client.get("/api/forwarders").json()
        assert [e["url"] for e in listed] == ["http://fwd-a", "http://fwd-b"]

        assert client.post("/api/forwarders/select", json={"url": "http://fwd-b"}).status_code == 200
        assert controller.registry.select_active() == "http://fwd-b"
        assert client.post("/api/forwarders/select", json={"url": "http://nope"}).status_code == 404

        assert client.post("/api/forwarders", json={"url": "http://fwd-c"}).status_code == 200
        assert client.post("/api/forwarders", json={"url": "http://fwd-c"}).status_code == 400

        assert client.post("/api/forwarders/reset").status_code == 200
        assert not any(e.is_usage_limited for e in controller.registry.entries())


def test_room_endpoint_switches_and_goes_idle(tmp_path: Path) -> None:
    controller, app = _app(tmp_path)
    with TestClient(app) as client:
        res = client.post("/api/room", json={"roomId": "mint-123"})
        assert res.status_code == 200
        assert res.json()["roomId"] == "mint-123"
        assert client.get("/api/state").json()["roomId"] == "mint-123"

        res = client.post("/api/room", json={"roomId": None})
        assert res.status_code == 200
        assert controller.state.current_room_id is None


def test_room_endpoint_reports_connection_failure(tmp_path: Path) -> None:
    _, app = _app(tmp_path, fail_connect=True)
    with TestClient(app) as client:
        assert client.post("/api/room", json={"roomId": "mint-123"}).status_code == 502


def test_test_chat_endpoint_is_broadcast_to_viewers(tmp_path: Path) -> None:
    _, app = _app(tmp_path)
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws:
            res = client.post("/api/test-chat", json={"username": "alice", "message": "hello there"})
            assert res.status_code == 200
            assert res.json()["message"] == "hello there"

            payload = ws.receive_json()
            assert payload["username"] == "alice"
            assert payload["message"] == "ok:hello there"
            assert payload["emotion"] == "happy"

        assert client.post("/api/test-chat", json={"username": " ", "message": "hi"}).status_code == 400


def test_history_backup_endpoint(tmp_path: Path) -> None:
    controller, app = _app(tmp_path)
    controller.context.history.root = tmp_path / "history"
    with TestClient(app) as client:
        client.post("/api/test-chat", json={"username": "alice", "message": "hello there"})
        res = client.post("/api/history/backup")

    assert res.status_code == 200
    body = res.json()
    assert body["messageCount"] == 1
    path = Path(body["path"])
    assert path.parent == tmp_path / "history" / "backups"
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["messages"] == [{"name": "alice", "chat message": "hello there"}]


def test_add_forwarder_rejects_malformed_url(tmp_path: Path) -> None:
    _, app = _app(tmp_path)
    with TestClient(app) as client:
        assert client.post("/api/forwarders", json={"url": "http://[::1"}).status_code == 400
