"""
시청자 WebSocket 브로드캐스트.
완성된 결과(텍스트 + 오디오 + 감정)를 연결된 모든 시청자에게 전송. 재시도 없음.
"""

from __future__ import annotations

import logging
from typing import Any

from starlette.websockets import WebSocket, WebSocketState

from chatrelay.overlay.state import record_result

logger = logging.getLogger(__name__)


def _is_ready(ws: WebSocket) -> bool:
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


class BroadcastSink:
    """시청자 연결 목록 + fan-out 전송"""

    def __init__(self):
        self._clients: set[WebSocket] = set()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def register(self, ws: WebSocket) -> None:
        self._clients.add(ws)
        logger.info("시청자 연결: 총 %d", len(self._clients))

    def unregister(self, ws: WebSocket) -> None:
        self._clients.discard(ws)
        logger.info("시청자 연결 종료: 총 %d", len(self._clients))

    async def broadcast(self, payload: dict[str, Any]) -> int:
        """
        준비된 연결에만 JSON 전송. 전송 실패한 연결은 목록에서 제거.

        Returns:
            전송 성공한 연결 수
        """
        record_result(payload)
        sent = 0
        for ws in list(self._clients):
            if not _is_ready(ws):
                continue
            try:
                await ws.send_json(payload)
                sent += 1
            except Exception as e:
                logger.debug("시청자 전송 실패, 연결 제거: %s", e)
                self._clients.discard(ws)
        logger.info(
            "브로드캐스트: %s → %d/%d, audio=%s, emotion=%s",
            payload.get("username"),
            sent,
            len(self._clients),
            payload.get("audio") is not None,
            payload.get("emotion"),
        )
        return sent
