"""
실행 설정. .env / 환경 변수에서 읽습니다.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent.parent


def env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = (os.environ.get(name) or "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _positive(value: int, default: int) -> int:
    return value if value >= 1 else default


def _env_path(name: str, default: Path) -> Path:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    p = Path(raw)
    return p if p.is_absolute() else (_project_root() / p)


@dataclass
class RelayConfig:
    feed_url: str = "https://livechat.pump.fun"
    feed_platform: str = "pump"
    feed_username: str = ""
    feed_origin: Optional[str] = "https://pump.fun"
    forwarders_path: Path = _project_root() / "config" / "forwarders.json"
    filter_policy_path: Path = _project_root() / "config" / "filter_policy.json"
    character_path: Path = _project_root() / "config" / "character.txt"
    ai_timeout_sec: float = 30.0
    tts_url: str = ""
    tts_api_key: str = ""
    tts_voice_id: str = ""
    tts_model_id: str = ""
    tts_output_format: str = "mp3_44100_128"
    tts_timeout_sec: float = 30.0
    history_capacity: int = 100
    history_dir: Path = _project_root() / "history"
    discard_stale_results: bool = True
    fallback_reply: str = "잠깐 생각이 끊겼어요. 조금 있다가 다시 말해 줄래요?"
    overlay_host: str = "127.0.0.1"
    overlay_port: int = 8765

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "RelayConfig":
        """프로젝트 루트 .env 로드 후 환경 변수로 설정 생성."""
        load_dotenv(env_file or (_project_root() / ".env"))
        base = cls()
        return cls(
            feed_url=(os.environ.get("FEED_URL") or base.feed_url).strip(),
            feed_platform=(os.environ.get("FEED_PLATFORM") or base.feed_platform).strip(),
            feed_username=(os.environ.get("FEED_USERNAME") or "").strip(),
            feed_origin=(os.environ.get("FEED_ORIGIN") or base.feed_origin or "").strip() or None,
            forwarders_path=_env_path("FORWARDERS_PATH", base.forwarders_path),
            filter_policy_path=_env_path("FILTER_POLICY_PATH", base.filter_policy_path),
            character_path=_env_path("CHARACTER_PATH", base.character_path),
            ai_timeout_sec=_env_float("AI_TIMEOUT_SEC", base.ai_timeout_sec),
            tts_url=(os.environ.get("TTS_URL") or "").strip(),
            tts_api_key=(os.environ.get("TTS_API_KEY") or "").strip(),
            tts_voice_id=(os.environ.get("TTS_VOICE_ID") or "").strip(),
            tts_model_id=(os.environ.get("TTS_MODEL_ID") or "").strip(),
            tts_output_format=(os.environ.get("TTS_OUTPUT_FORMAT") or base.tts_output_format).strip(),
            tts_timeout_sec=_env_float("TTS_TIMEOUT_SEC", base.tts_timeout_sec),
            history_capacity=_positive(_env_int("CHAT_HISTORY_CAPACITY", base.history_capacity), base.history_capacity),
            history_dir=_env_path("HISTORY_DIR", base.history_dir),
            discard_stale_results=env_flag("DISCARD_STALE_RESULTS", base.discard_stale_results),
            fallback_reply=(os.environ.get("FALLBACK_REPLY") or base.fallback_reply).strip(),
            overlay_host=(os.environ.get("OVERLAY_HOST") or base.overlay_host).strip(),
            overlay_port=_env_int("OVERLAY_PORT", base.overlay_port),
        )
