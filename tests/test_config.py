from __future__ import annotations

import logging
from pathlib import Path

import pytest

import fakes  # noqa: F401  (프로젝트 루트를 sys.path 에 추가)

from chatrelay.utils.config import RelayConfig, env_flag
from chatrelay.utils.logging_config import setup_logging

ENV_KEYS = (
    "FEED_URL",
    "AI_TIMEOUT_SEC",
    "CHAT_HISTORY_CAPACITY",
    "DISCARD_STALE_RESULTS",
    "FORWARDERS_PATH",
    "OVERLAY_PORT",
    "TTS_URL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    # setenv 로 원래 값을 기록해 두어야 load_dotenv 가 넣은 값도 테스트 후 지워짐
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)


def test_from_env_reads_dotenv_file(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text(
        "FEED_URL=https://feed.example\n"
        "AI_TIMEOUT_SEC=12.5\n"
        "CHAT_HISTORY_CAPACITY=20\n"
        "DISCARD_STALE_RESULTS=false\n"
        f"FORWARDERS_PATH={tmp_path / 'fwd.json'}\n",
        encoding="utf-8",
    )
    config = RelayConfig.from_env(env_file)

    assert config.feed_url == "https://feed.example"
    assert config.ai_timeout_sec == 12.5
    assert config.history_capacity == 20
    assert config.discard_stale_results is False
    assert config.forwarders_path == tmp_path / "fwd.json"


def test_from_env_falls_back_on_bad_numbers(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("OVERLAY_PORT", "not-a-port")
    monkeypatch.setenv("AI_TIMEOUT_SEC", "soon")
    config = RelayConfig.from_env(tmp_path / "missing.env")

    assert config.overlay_port == RelayConfig.overlay_port
    assert config.ai_timeout_sec == 30.0
    assert config.discard_stale_results is True
    assert config.tts_url == ""


def test_env_flag(monkeypatch) -> None:
    monkeypatch.setenv("DISCARD_STALE_RESULTS", " Yes ")
    assert env_flag("DISCARD_STALE_RESULTS", False) is True
    monkeypatch.setenv("DISCARD_STALE_RESULTS", "")
    assert env_flag("DISCARD_STALE_RESULTS", False) is False


def test_setup_logging_routes_categories(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved = (list(root.handlers), root.level)
    try:
        log_dir = setup_logging(tmp_path / "logs")
        logging.getLogger("chatrelay.ai.relay_client").info("ai line")
        logging.getLogger("chatrelay.chat.pump_client").info("chat line")
        for handler in root.handlers:
            handler.flush()

        assert "ai line" in (log_dir / "ai.log").read_text(encoding="utf-8")
        assert "chat line" not in (log_dir / "ai.log").read_text(encoding="utf-8")
        assert "chat line" in (log_dir / "chat.log").read_text(encoding="utf-8")
        assert "ai line" in (log_dir / "app.log").read_text(encoding="utf-8")
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved[0]
        root.setLevel(saved[1])
