"""
채팅 클라이언트 추상 기본 클래스
라이브 채팅 방 하나에 연결해 메시지를 받는 클라이언트가 구현해야 하는 인터페이스
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Union
from dataclasses import dataclass, field
from datetime import datetime
import asyncio
import logging

logger = logging.getLogger(__name__)


@dataclass
class ChatMessage:
    """채팅 메시지 데이터 클래스 (플랫폼 공통)"""
    user: str
    message: str
    room_id: str
    platform: str
    timestamp: datetime = field(default_factory=datetime.now)
    user_address: Optional[str] = None  # 지갑 주소 등 (선택)
    message_id: Optional[str] = None


MessageCallback = Callable[[ChatMessage], Union[None, Awaitable[None]]]
DisconnectCallback = Callable[[str], Union[None, Awaitable[None]]]


class ChatClient(ABC):
    """채팅 클라이언트 추상 기본 클래스. 인스턴스 하나 = 방 연결 하나."""

    def __init__(
        self,
        room_id: str,
        on_message: Optional[MessageCallback] = None,
        on_disconnect: Optional[DisconnectCallback] = None,
    ):
        """
        Args:
            room_id: 방(민트) ID
            on_message: 메시지 수신 시 호출할 콜백
            on_disconnect: 연결 종료/오류 시 호출할 콜백 (인자: 사유)
        """
        self.room_id = room_id
        self.on_message = on_message
        self.on_disconnect = on_disconnect
        self.is_connected = False
        self._closing = False

    @property
    @abstractmethod
    def platform_name(self) -> str:
        """플랫폼 이름 반환 (예: 'pump')"""
        pass

    @abstractmethod
    async def connect(self):
        """플랫폼별 연결 로직 구현"""
        pass

    @abstractmethod
    async def disconnect(self):
        """플랫폼별 연결 종료 로직 구현"""
        pass

    async def _emit(self, callback: Optional[Callable[..., Any]], *args) -> None:
        """동기/비동기 콜백 모두 지원."""
        if callback is None:
            return
        result = callback(*args)
        if asyncio.iscoroutine(result):
            await result

    async def _dispatch_message(self, message: ChatMessage) -> None:
        await self._emit(self.on_message, message)

    async def _dispatch_disconnect(self, reason: str) -> None:
        """연결 끊김 알림. 직접 disconnect() 한 경우는 알리지 않음."""
        self.is_connected = False
        if self._closing:
            return
        await self._emit(self.on_disconnect, reason)

    def _create_message(
        self,
        user: str,
        message: str,
        timestamp: Optional[datetime] = None,
        user_address: Optional[str] = None,
        message_id: Optional[str] = None,
    ) -> ChatMessage:
        """ChatMessage 객체 생성 헬퍼 메서드"""
        return ChatMessage(
            user=user,
            message=message,
            room_id=self.room_id,
            platform=self.platform_name,
            timestamp=timestamp or datetime.now(),
            user_address=user_address,
            message_id=message_id,
        )
