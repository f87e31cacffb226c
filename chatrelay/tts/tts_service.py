"""
원격 TTS 래퍼. 답변 텍스트를 음성 합성 API로 보내 오디오 바이트를 받습니다.

AI 감정(emotion) → 음성 스타일 태그로 변환해 함께 전달.
요청: POST {TTS_URL} {"text", "voice_id", "model_id", "output_format", "style"} → 오디오 바이너리
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from chatrelay.ai.models import VALID_EMOTIONS

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 30.0
DEFAULT_OUTPUT_FORMAT = "mp3_44100_128"

# AIResponse.emotion → 음성 스타일 태그
EMOTION_TO_STYLE: dict[str, str] = {
    "happy": "cheerful",
    "sad": "sad",
    "angry": "angry",
    "surprised": "excited",
    "neutral": "default",
    "excited": "excited",
}


def emotion_to_style(emotion: Optional[str]) -> str:
    """감정 문자열을 스타일 태그로 변환. 모르는 감정은 기본 스타일."""
    key = (emotion or "neutral").strip().lower()
    if key not in VALID_EMOTIONS:
        key = "neutral"
    return EMOTION_TO_STYLE.get(key, EMOTION_TO_STYLE["neutral"])


class TTSError(Exception):
    """음성 합성 실패"""


class TTSService:
    """원격 TTS API 클라이언트."""

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        voice_id: str = "",
        model_id: str = "",
        output_format: str = DEFAULT_OUTPUT_FORMAT,
        timeout: float = DEFAULT_TIMEOUT_SEC,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        url: 합성 엔드포인트 전체 URL
        api_key: 있으면 xi-api-key / Authorization 헤더로 전달
        transport: 테스트용 httpx 전송 계층 주입
        """
        self.url = (url or "").strip()
        self.api_key = (api_key or "").strip()
        self.voice_id = voice_id
        self.model_id = model_id
        self.output_format = output_format or DEFAULT_OUTPUT_FORMAT
        self.timeout = float(timeout)
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "audio/*"}
        if self.api_key:
            headers["xi-api-key"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def synthesize(self, text: str, emotion: Optional[str] = "neutral") -> bytes:
        """
        텍스트를 음성으로 변환.

        Returns:
            오디오 바이트. text 가 비어 있으면 b"".

        Raises:
            TTSError: URL 미설정, 네트워크 오류, 2xx 아님, 빈 응답
        """
        text = (text or "").strip()
        if not text:
            return b""
        if not self.url:
            raise TTSError("TTS_URL이 설정되지 않았습니다")
        body = {
            "text": text,
            "voice_id": self.voice_id,
            "model_id": self.model_id,
            "output_format": self.output_format,
            "style": emotion_to_style(emotion),
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=body, headers=self._headers())
                response.raise_for_status()
        except httpx.InvalidURL as e:
            raise TTSError(f"TTS_URL 형식 오류: {self.url!r} ({e})") from e
        except httpx.HTTPStatusError as e:
            raise TTSError(f"TTS 실패: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise TTSError(f"TTS 네트워크 오류: {e}") from e
        audio = response.content
        if not audio:
            raise TTSError("TTS 응답이 비어 있습니다")
        logger.debug("TTS 합성: text_len=%d, style=%s, bytes=%d", len(text), body["style"], len(audio))
        return audio
