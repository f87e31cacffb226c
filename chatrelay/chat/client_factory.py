"""
채팅 피드 클라이언트 팩토리
FEED_PLATFORM 값으로 방 연결 클라이언트 클래스를 고름. 세션 컨트롤러가 방 전환마다 호출.
"""

import logging
from typing import Dict

from .base_client import ChatClient
from .pump_client import PumpChatClient

logger = logging.getLogger(__name__)


class ChatClientFactory:
    """플랫폼 이름 → ChatClient 구현 클래스"""

    _platforms: Dict[str, type[ChatClient]] = {
        "pump": PumpChatClient,
    }

    @staticmethod
    def _key(platform: str) -> str:
        return (platform or "").strip().lower()

    @classmethod
    def create(cls, platform: str, room_id: str, **kwargs) -> ChatClient:
        """
        방 하나에 붙을 클라이언트 생성 (연결은 하지 않음)

        Args:
            platform: 플랫폼 이름 (대소문자 무시)
            room_id: 방(민트) ID
            **kwargs: 클라이언트 생성자 인자 (feed_url, username, origin 등)

        Raises:
            ValueError: 등록되지 않은 플랫폼
        """
        client_class = cls._platforms.get(cls._key(platform))
        if client_class is None:
            raise ValueError(
                f"지원하지 않는 피드 플랫폼: {platform!r} "
                f"(지원: {', '.join(sorted(cls._platforms))})"
            )
        logger.debug("피드 클라이언트 생성: %s room=%s", client_class.__name__, room_id)
        return client_class(room_id=room_id, **kwargs)

    @classmethod
    def register_platform(cls, platform: str, client_class: type[ChatClient]) -> None:
        """다른 피드 서버용 클라이언트 등록"""
        if not (isinstance(client_class, type) and issubclass(client_class, ChatClient)):
            raise TypeError(f"ChatClient 하위 클래스가 아님: {client_class!r}")
        cls._platforms[cls._key(platform)] = client_class

    @classmethod
    def get_supported_platforms(cls) -> list[str]:
        return sorted(cls._platforms)
