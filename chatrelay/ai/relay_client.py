"""
AI 릴레이(포워더) 클라이언트
최근 채팅 목록을 보내고 JSON 형식(content, emotion)으로 답변을 받습니다.

요청: POST {forwarder}/ai-api
  {"systemInstruction": ..., "contents": [{"parts": [{"text": "<채팅 JSON 배열>"}]}], "generationConfig": ...}
응답: candidates[0].content.parts[0].text 에 {"content": "...", "emotion": "..."} JSON 문자열
"""

import json
import logging
import re
import time
from pathlib import Path
from typing import Any, List, Optional

import httpx

from .models import AIResponse, ChatTurn

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 30.0
MAX_CHARACTER_PROMPT = 12000

DEFAULT_GENERATION_CONFIG = {
    "temperature": 0.9,
    "maxOutputTokens": 256,
    "responseMimeType": "application/json",
}

SYSTEM_PROMPT = """아래 사용자 메시지는 라이브 채팅 목록(JSON 배열, 각 항목 name / chat message)입니다.
마지막 채팅에 한두 문장으로 짧게 답하세요.
반드시 아래 JSON만 출력하세요. 설명·마크다운 없이 한 줄로 작성하세요.
{"content": "답변", "emotion": "감정키"}
emotion은 반드시 다음 중 하나: happy, sad, angry, surprised, neutral, excited."""


class RelayError(Exception):
    """AI 릴레이 호출 실패 (네트워크, 타임아웃, 2xx 아님, 응답 형식 오류)"""


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent.parent


def _load_character_prompt(character_path: Optional[Path] = None) -> str:
    """config/character.txt 내용 로드. 없으면 빈 문자열."""
    p = character_path or (_project_root() / "config" / "character.txt")
    if not p.exists():
        return ""
    try:
        text = p.read_text(encoding="utf-8").replace("\0", "").strip()
        if len(text) > MAX_CHARACTER_PROMPT:
            logger.warning(
                "캐릭터 프롬프트가 너무 깁니다(%d자). %d자로 잘라서 사용합니다.",
                len(text),
                MAX_CHARACTER_PROMPT,
            )
            text = text[:MAX_CHARACTER_PROMPT]
        return text
    except OSError as e:
        logger.warning("캐릭터 파일 로드 실패 %s: %s", p, e)
        return ""


def _strip_code_fence(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[-1] if "\n" in text else text[3:]
    if text.endswith("```"):
        text = text.rsplit("```", 1)[0].strip()
    return text


def _extract_text(body: Any) -> str:
    """응답 본문에서 candidates[0].content.parts[0].text 추출. 형식이 다르면 RelayError."""
    try:
        text = body["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise RelayError(f"응답 형식 오류: {str(body)[:200]}") from e
    if not isinstance(text, str) or not text.strip():
        raise RelayError("응답 text가 비어 있습니다")
    return text


def parse_reply(body: Any) -> AIResponse:
    """릴레이 응답 본문 → AIResponse. content 없거나 JSON 아니면 RelayError."""
    raw = _extract_text(body)
    try:
        data = json.loads(_strip_code_fence(raw))
    except json.JSONDecodeError as e:
        raise RelayError(f"응답 JSON 파싱 실패, raw={raw[:200]!r}") from e
    if not isinstance(data, dict):
        raise RelayError(f"응답 JSON이 객체가 아닙니다: {raw[:200]!r}")
    content = data.get("content")
    if not isinstance(content, str) or not content.strip():
        raise RelayError(f"응답에 content 없음: {raw[:200]!r}")
    emotion = data.get("emotion")
    if not isinstance(emotion, str):
        emotion = "neutral"
    return AIResponse(content=content, emotion=emotion)


class RelayClient:
    """포워더 경유 AI 호출. config/character.txt 있으면 시스템 지시문 앞에 붙임."""

    def __init__(
        self,
        character_path: Optional[Path] = None,
        timeout: float = DEFAULT_TIMEOUT_SEC,
        generation_config: Optional[dict] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if timeout is None or timeout <= 0:
            # 무제한 대기는 큐 전체를 멈추게 하므로 허용하지 않음
            timeout = DEFAULT_TIMEOUT_SEC
        self.timeout = float(timeout)
        self.generation_config = dict(generation_config or DEFAULT_GENERATION_CONFIG)
        self._character_prompt = _load_character_prompt(character_path)
        self._transport = transport
        if self._character_prompt:
            logger.info("캐릭터 설정 로드: %d자", len(self._character_prompt))
        logger.info("RelayClient 초기화 완료: timeout=%.1fs", self.timeout)

    def system_instruction(self) -> str:
        if not self._character_prompt:
            return SYSTEM_PROMPT
        return f"{self._character_prompt}\n\n{SYSTEM_PROMPT}"

    def build_request(self, turns: List[ChatTurn]) -> dict:
        chat_json = json.dumps([t.to_prompt_item() for t in turns], ensure_ascii=False)
        return {
            "systemInstruction": {"parts": [{"text": self.system_instruction()}]},
            "contents": [{"parts": [{"text": chat_json}]}],
            "generationConfig": self.generation_config,
        }

    async def reply(self, forwarder_url: str, turns: List[ChatTurn]) -> AIResponse:
        """
        채팅 목록을 포워더로 보내 답변 + 감정을 받습니다.

        Args:
            forwarder_url: 활성 포워더 기본 URL
            turns: 히스토리 스냅샷 (마지막 항목이 이번 턴)

        Raises:
            RelayError: 네트워크/타임아웃/상태 코드/응답 형식 오류
        """
        url = re.sub(r"/+$", "", forwarder_url) + "/ai-api"
        body = self.build_request(turns)
        logger.debug("AI 요청: url=%s, turns=%d", url, len(turns))
        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=body)
                response.raise_for_status()
                data = response.json()
        except httpx.InvalidURL as e:
            raise RelayError(f"포워더 URL 형식 오류: {forwarder_url!r} ({e})") from e
        except httpx.TimeoutException as e:
            raise RelayError(f"AI 호출 타임아웃 ({self.timeout:.0f}초): {url}") from e
        except httpx.HTTPStatusError as e:
            raise RelayError(f"AI 호출 실패: HTTP {e.response.status_code} {url}") from e
        except httpx.HTTPError as e:
            raise RelayError(f"AI 호출 네트워크 오류: {e}") from e
        except ValueError as e:
            raise RelayError(f"AI 응답 본문이 JSON이 아닙니다: {e}") from e
        elapsed = time.perf_counter() - start
        result = parse_reply(data)
        logger.info(
            "AI 응답: emotion=%s, len=%d, %.2fs",
            result.emotion,
            len(result.content),
            elapsed,
        )
        return result
