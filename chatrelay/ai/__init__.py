# AI 추론 모듈

from .models import AIResponse, ChatTurn, ForwarderEntry, VALID_EMOTIONS
from .chat_history import ChatHistory
from .forwarder_registry import ForwarderRegistry, ForwarderStoreError
from .relay_client import RelayClient, RelayError

__all__ = [
    "AIResponse",
    "ChatTurn",
    "ForwarderEntry",
    "VALID_EMOTIONS",
    "ChatHistory",
    "ForwarderRegistry",
    "ForwarderStoreError",
    "RelayClient",
    "RelayError",
]
