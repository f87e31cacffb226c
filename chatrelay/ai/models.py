"""
AI 모듈 데이터 모델
채팅 턴(ChatTurn), AI 응답(AIResponse), 포워더 항목(ForwarderEntry)
"""

from dataclasses import dataclass
from typing import Any, Optional


VALID_EMOTIONS = frozenset({
    "happy", "sad", "angry", "surprised", "neutral", "excited"
})


@dataclass(frozen=True)
class ChatTurn:
    """채팅 한 턴 (닉네임 + 메시지). 생성 후 변경 불가."""
    username: str
    message: str

    def to_prompt_item(self) -> dict:
        """AI 요청 contents 에 들어가는 형식."""
        return {"name": self.username, "chat message": self.message}


@dataclass
class AIResponse:
    """AI 릴레이 구조화 응답 (답변 + 감정)"""
    content: str
    emotion: str = "neutral"

    def __post_init__(self):
        self.content = (self.content or "").strip()
        self.emotion = (self.emotion or "neutral").strip().lower()


@dataclass
class ForwarderEntry:
    """AI 릴레이 포워더 항목. 파일에는 camelCase 키로 저장."""
    url: str
    is_usage_limited: bool = False
    selected: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ForwarderEntry":
        url = data.get("url")
        if not isinstance(url, str) or not url.strip():
            raise ValueError(f"포워더 url 누락: {data!r}")
        return cls(
            url=url.strip(),
            is_usage_limited=bool(data.get("isUsageLimited", False)),
            selected=bool(data.get("selected", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "isUsageLimited": self.is_usage_limited,
            "selected": self.selected,
        }


def build_payload(
    turn: ChatTurn,
    reply: Optional[str],
    audio_b64: Optional[str],
    emotion: Optional[str],
) -> dict[str, Any]:
    """시청자 브로드캐스트 메시지 형식."""
    return {
        "username": turn.username,
        "userMessage": turn.message,
        "message": reply,
        "audio": audio_b64,
        "emotion": emotion,
    }
