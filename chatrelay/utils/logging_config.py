"""
릴레이 로깅 설정.

- 콘솔: LOG_CONSOLE_LEVEL (기본 WARNING)
- logs/app.log: INFO 이상 전체
- logs/error.log: ERROR 이상 (포워더 소진 CRITICAL 포함)
- logs/chat.log / ai.log / tts.log / pipeline.log: 구간별 DEBUG 이상
로그 폴더는 LOG_DIR 로 바꿀 수 있음.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# 구간별 로그 파일 → 해당 logger name 접두사
CATEGORY_PREFIXES: dict[str, tuple[str, ...]] = {
    "chat.log": ("chatrelay.chat", "engineio", "socketio"),
    "ai.log": ("chatrelay.ai",),
    "tts.log": ("chatrelay.tts",),
    "pipeline.log": ("chatrelay.pipeline", "chatrelay.overlay"),
}

# 라이브러리 로거: 파일이 넘치지 않게 레벨만 올림
NOISY_LOGGERS = ("engineio", "socketio", "httpx", "httpcore", "uvicorn.access")


class _NamePrefixFilter(logging.Filter):
    def __init__(self, prefixes: tuple[str, ...]):
        super().__init__()
        self.prefixes = prefixes

    def filter(self, record: logging.LogRecord) -> bool:
        return (record.name or "").startswith(self.prefixes)


def _level_from_env(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip().upper()
    level = logging.getLevelName(raw) if raw else default
    return level if isinstance(level, int) else default


def _resolve_log_dir(log_dir: Optional[Path]) -> Path:
    if log_dir:
        return Path(log_dir)
    env_dir = (os.environ.get("LOG_DIR") or "").strip()
    if env_dir:
        return Path(env_dir)
    return Path(__file__).resolve().parent.parent.parent / "logs"


def _file_handler(path: Path, level: int) -> RotatingFileHandler:
    try:
        max_mb = int(os.environ.get("LOG_MAX_MB") or 10)
        backups = int(os.environ.get("LOG_BACKUP_COUNT") or 5)
    except ValueError:
        max_mb, backups = 10, 5
    handler = RotatingFileHandler(
        path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def setup_logging(log_dir: Optional[Path] = None) -> Path:
    """루트 로거 핸들러를 새로 구성. 여러 번 불러도 핸들러가 중복되지 않음.

    Returns:
        로그 파일이 쌓이는 폴더
    """
    log_dir = _resolve_log_dir(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
        if isinstance(old, logging.FileHandler):
            old.close()
    root.setLevel(logging.DEBUG)

    console = logging.StreamHandler()
    console.setLevel(_level_from_env("LOG_CONSOLE_LEVEL", logging.WARNING))
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(console)

    root.addHandler(_file_handler(log_dir / "app.log", logging.INFO))
    root.addHandler(_file_handler(log_dir / "error.log", logging.ERROR))
    for filename, prefixes in CATEGORY_PREFIXES.items():
        handler = _file_handler(log_dir / filename, logging.DEBUG)
        handler.addFilter(_NamePrefixFilter(prefixes))
        root.addHandler(handler)

    noisy_level = _level_from_env("ENGINEIO_LOG_LEVEL", logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)

    logging.getLogger(__name__).info("로깅 초기화: %s", log_dir)
    return log_dir
