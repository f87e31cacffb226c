"""
채팅 수집 모듈
라이브 채팅 방의 메시지를 수집하고 걸러내는 모듈
"""

from .base_client import ChatClient, ChatMessage
from .pump_client import PumpChatClient
from .chat_parser import ChatParser, FilterConfig
from .client_factory import ChatClientFactory

__all__ = [
    "ChatClient",
    "ChatMessage",
    "PumpChatClient",
    "ChatParser",
    "FilterConfig",
    "ChatClientFactory",
]
