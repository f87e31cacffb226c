"""
시청자 브로드캐스트 + 관리 API.

- BroadcastSink: 완성된 답변(텍스트·오디오·감정)을 /ws 시청자에게 전송
- overlay_state: 최근 결과, /api/state 로 반환
- server.create_app(controller): FastAPI 앱
"""

from chatrelay.overlay.state import overlay_state
from chatrelay.overlay.broadcaster import BroadcastSink

__all__ = ["overlay_state", "BroadcastSink"]
