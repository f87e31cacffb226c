"""
라이브 채팅 Socket.IO 클라이언트
방(민트 ID) 하나에 접속해 실시간 채팅 메시지를 수신합니다.

이벤트:
- connect 후 joinRoom {roomId, username} 전송
- newMessage {username, message, userAddress} 수신
"""

import json
import logging
from datetime import datetime
from typing import Optional

import socketio

from .base_client import ChatClient, DisconnectCallback, MessageCallback

logger = logging.getLogger(__name__)

DEFAULT_FEED_URL = "https://livechat.pump.fun"
DEFAULT_ORIGIN = "https://pump.fun"
JOIN_EVENT = "joinRoom"
MESSAGE_EVENT = "newMessage"


class PumpChatClient(ChatClient):
    """라이브 채팅 Socket.IO 클라이언트

    재연결은 직접 하지 않습니다. 연결이 끊기면 on_disconnect 로 알리고
    방 재접속 여부는 세션 컨트롤러가 결정합니다.
    """

    @property
    def platform_name(self) -> str:
        """플랫폼 이름"""
        return "pump"

    def __init__(
        self,
        room_id: str,
        feed_url: str = DEFAULT_FEED_URL,
        username: str = "",
        origin: Optional[str] = DEFAULT_ORIGIN,
        on_message: Optional[MessageCallback] = None,
        on_disconnect: Optional[DisconnectCallback] = None,
    ):
        """
        Args:
            room_id: 방(민트) ID
            feed_url: Socket.IO 서버 URL
            username: joinRoom 에 넣을 접속 이름 (비워도 됨)
            origin: Origin 헤더 (서버가 요구하는 경우)
        """
        super().__init__(room_id, on_message, on_disconnect)
        self.feed_url = feed_url
        self.username = username
        self.origin = origin
        self.sio: Optional[socketio.AsyncClient] = None

    async def connect(self):
        """Socket.IO 연결 후 방 입장"""
        self._closing = False
        try:
            self.sio = socketio.AsyncClient(
                reconnection=False,  # 재연결은 세션 컨트롤러가 관리
                logger=False,
                engineio_logger=False,
            )
            self.sio.on("connect", self._on_connect)
            self.sio.on("disconnect", self._on_disconnect)
            self.sio.on("connect_error", self._on_connect_error)
            self.sio.on(MESSAGE_EVENT, self._on_chat_message)

            headers = {"Origin": self.origin} if self.origin else {}
            logger.info(f"[{self.platform_name}] Socket.IO 연결 시도: room={self.room_id}")
            await self.sio.connect(
                self.feed_url,
                headers=headers,
                transports=["websocket"],
            )
            self.is_connected = True
            logger.info(f"[{self.platform_name}] Socket.IO 연결 성공: room={self.room_id}")
        except Exception as e:
            logger.error(f"[{self.platform_name}] 연결 실패: {e}")
            self.is_connected = False
            raise

    async def _on_connect(self):
        """연결 완료 시 방 입장 요청"""
        await self.sio.emit(JOIN_EVENT, {"roomId": self.room_id, "username": self.username})
        logger.info(f"[{self.platform_name}] 방 입장 요청: {self.room_id}")

    async def _on_disconnect(self, reason=None):
        """Socket.IO 연결 종료 시 호출"""
        logger.warning(f"[{self.platform_name}] Socket.IO 연결 종료: room={self.room_id}, reason={reason}")
        await self._dispatch_disconnect(str(reason or "disconnect"))

    async def _on_connect_error(self, data=None):
        logger.error(f"[{self.platform_name}] Socket.IO 연결 오류: room={self.room_id}, {data}")
        await self._dispatch_disconnect(f"connect_error: {data}")

    async def _on_chat_message(self, data):
        """
        채팅 메시지 수신 핸들러
        payload: {username, message, userAddress, timestamp?, id?}
        username / message 가 없으면 버림.
        """
        try:
            if isinstance(data, str):
                try:
                    data = json.loads(data)
                except json.JSONDecodeError:
                    logger.debug(f"[{self.platform_name}] {MESSAGE_EVENT} payload (non-JSON string): {data[:100]}")
                    return
            if not isinstance(data, dict):
                return
            username = data.get("username")
            content = data.get("message")
            if not isinstance(username, str) or not isinstance(content, str):
                logger.debug(f"[{self.platform_name}] 필수 필드 없는 메시지 무시: {str(data)[:100]}")
                return
            if not username.strip() or not content.strip():
                return

            timestamp = None
            raw_ts = data.get("timestamp")
            if isinstance(raw_ts, (int, float)) and raw_ts > 0:
                try:
                    timestamp = datetime.fromtimestamp(raw_ts / 1000 if raw_ts > 1e12 else raw_ts)
                except (OverflowError, OSError, ValueError):
                    timestamp = None

            message = self._create_message(
                user=username,
                message=content,
                timestamp=timestamp,
                user_address=data.get("userAddress"),
                message_id=data.get("id"),
            )
            await self._dispatch_message(message)
        except Exception as e:
            logger.error(f"[{self.platform_name}] 채팅 메시지 처리 오류: {e}, 데이터: {data}", exc_info=True)

    async def disconnect(self):
        """Socket.IO 연결 종료"""
        self._closing = True
        if self.sio:
            await self.sio.disconnect()
        self.is_connected = False
        logger.info(f"[{self.platform_name}] Socket.IO 연결 종료: room={self.room_id}")
