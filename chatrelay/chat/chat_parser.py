"""
채팅 메시지 파싱 및 필터링
정규화(HTML 이스케이프, [지문] 제거) → 중복/스팸/홍보/길이 검사 → ChatTurn
"""

import json
import re
import logging
from collections import OrderedDict
from pathlib import Path
from typing import Optional, Union
from dataclasses import dataclass, field, fields

from chatrelay.ai.models import ChatTurn

logger = logging.getLogger(__name__)

DEFAULT_BLOCKED_KEYWORDS = [
    "scam",
    "rugpull",
    "rug pull",
    "honeypot",
    "drainer",
    "seed phrase",
    "private key",
]

DEFAULT_PROMO_PATTERNS = [
    r"https?://",
    r"\bwww\.",
    r"\b\w+\.(com|io|xyz|net|org|gg|fun|app)\b",
    r"(^|\s)@\w{2,}",
    r"\b(join|giveaway|airdrop|follow|dm me|check out|promo)\b",
    r"!{3,}",
]

# "file.txt", "v1.2" 처럼 영숫자.영숫자 한 덩어리
FILENAME_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9]+\.[A-Za-z0-9]+$")
STAGE_DIRECTION_PATTERN = re.compile(r"\[[^\]]*\]")
ALNUM_PATTERN = re.compile(r"[^\W_]")


@dataclass
class FilterConfig:
    """필터 설정 (정책 값은 config/filter_policy.json 으로 덮어쓰기 가능)"""
    min_length: int = 2  # 최소 메시지 길이 (포함)
    max_length: int = 200  # 최대 메시지 길이 (포함)
    blocked_keywords: list[str] = field(default_factory=lambda: list(DEFAULT_BLOCKED_KEYWORDS))
    promo_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_PROMO_PATTERNS))
    filter_filename_tokens: bool = True
    require_alphanumeric: bool = True
    seen_capacity: int = 1000  # 중복 기록 상한 (오래된 것부터 제거)

    @classmethod
    def from_file(cls, path: Optional[Union[Path, str]]) -> "FilterConfig":
        """JSON 파일에서 설정 로드. 파일이 없으면 기본값, 모르는 키는 무시."""
        if not path:
            return cls()
        p = Path(path)
        if not p.exists():
            return cls()
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("필터 설정 로드 실패 %s: %s (기본값 사용)", p, e)
            return cls()
        if not isinstance(data, dict):
            logger.warning("필터 설정 형식 오류 %s (기본값 사용)", p)
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


def normalize_text(text: str, strip_stage_directions: bool = False) -> str:
    """< > 이스케이프, (선택) [지문] 제거, 공백 정리."""
    s = str(text or "").replace("<", "&lt;").replace(">", "&gt;")
    if strip_stage_directions:
        s = STAGE_DIRECTION_PATTERN.sub(" ", s)
    s = re.sub(r"\s+", " ", s)
    return s.strip()


class ChatParser:
    """채팅 메시지 파싱 및 필터링 클래스 (중복 기록 포함)"""

    def __init__(self, filter_config: Optional[FilterConfig] = None):
        """
        Args:
            filter_config: 필터 설정 (None이면 기본 설정 사용)
        """
        self.filter_config = filter_config or FilterConfig()
        self._keywords = [k.lower() for k in self.filter_config.blocked_keywords if k]
        self.promo_patterns = [
            re.compile(p, re.IGNORECASE) for p in self.filter_config.promo_patterns if p
        ]
        # 삽입 순서 유지 → 가득 차면 가장 먼저 들어온 것부터 제거
        self._seen: "OrderedDict[tuple[str, str], None]" = OrderedDict()

    @staticmethod
    def _key(turn: ChatTurn) -> tuple[str, str]:
        return (turn.username, turn.message)

    def normalize(self, username: str, message: str) -> ChatTurn:
        return ChatTurn(
            username=normalize_text(username),
            message=normalize_text(message, strip_stage_directions=True),
        )

    def is_seen(self, turn: ChatTurn) -> bool:
        return self._key(turn) in self._seen

    def filter(self, turn: ChatTurn) -> bool:
        """
        정규화된 턴 필터링

        Returns:
            True: 통과, False: 차단
        """
        cfg = self.filter_config
        text = turn.message

        if self.is_seen(turn):
            logger.debug(f"중복 메시지 차단: {turn.username}: {text[:50]}")
            return False

        if cfg.filter_filename_tokens and FILENAME_TOKEN_PATTERN.match(text):
            logger.debug(f"파일명 형태 메시지 차단: {text[:50]}")
            return False

        text_lower = text.lower()
        for keyword in self._keywords:
            if keyword in text_lower:
                logger.debug(f"차단 키워드 발견: {keyword}")
                return False

        for pattern in self.promo_patterns:
            if pattern.search(text):
                logger.debug(f"홍보 메시지 차단: {text[:50]}")
                return False

        if len(text) < cfg.min_length or len(text) > cfg.max_length:
            logger.debug(f"길이 조건 불일치 차단: len={len(text)}")
            return False

        if cfg.require_alphanumeric and not ALNUM_PATTERN.search(text):
            logger.debug(f"영숫자 없는 메시지 차단: {text[:50]}")
            return False

        return True

    def remember(self, turn: ChatTurn) -> None:
        """중복 기록에 추가. 상한 초과 시 가장 오래된 기록 제거."""
        key = self._key(turn)
        if key in self._seen:
            return
        self._seen[key] = None
        while len(self._seen) > self.filter_config.seen_capacity:
            self._seen.popitem(last=False)

    def accept(self, username: str, message: str) -> Optional[ChatTurn]:
        """
        정규화 + 필터링을 한 번에 수행. 통과하면 처리 전에 중복 기록부터 남김.

        Returns:
            통과한 ChatTurn 또는 None (차단)
        """
        turn = self.normalize(username, message)
        if not turn.username or not self.filter(turn):
            return None
        self.remember(turn)
        return turn

    def reset(self) -> None:
        """중복 기록 초기화 (방 전환 시)."""
        self._seen.clear()

    @property
    def seen_count(self) -> int:
        return len(self._seen)
