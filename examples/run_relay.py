"""
라이브 채팅 → 필터 → 히스토리 + 큐 → AI 릴레이(포워더) → TTS → 시청자 브로드캐스트

.env에 FEED_URL, TTS_URL 등 설정, config/forwarders.json 에 포워더 목록 작성 후 실행.
실행: python examples/run_relay.py [ROOM_ID]  (프로젝트 루트에서)

- 시청자: ws://127.0.0.1:8765/ws 로 접속하면 답변(텍스트·오디오 base64·감정)을 받습니다.
- 방 전환: POST /api/room {"roomId": "..."} (null 이면 대기 상태)
- 테스트 채팅: POST /api/test-chat {"username": "...", "message": "..."}
- 포워더 수동 선택: POST /api/forwarders/select {"url": "..."}
포트 변경 시 .env에 OVERLAY_PORT=8765 설정.
"""

import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import uvicorn

from chatrelay.ai import ForwarderRegistry, RelayClient
from chatrelay.chat import ChatParser, FilterConfig
from chatrelay.overlay import BroadcastSink
from chatrelay.overlay.server import create_app
from chatrelay.pipeline import SessionController
from chatrelay.tts import TTSService
from chatrelay.utils import RelayConfig, setup_logging

logger = logging.getLogger(__name__)


def build_controller(config: RelayConfig) -> SessionController:
    registry = ForwarderRegistry(config.forwarders_path)
    if not registry.entries():
        logger.warning("포워더 목록이 비어 있습니다: %s", config.forwarders_path)
    relay = RelayClient(
        character_path=config.character_path,
        timeout=config.ai_timeout_sec,
    )
    tts = TTSService(
        url=config.tts_url,
        api_key=config.tts_api_key,
        voice_id=config.tts_voice_id,
        model_id=config.tts_model_id,
        output_format=config.tts_output_format,
        timeout=config.tts_timeout_sec,
    )
    parser = ChatParser(FilterConfig.from_file(config.filter_policy_path))
    return SessionController(
        config=config,
        registry=registry,
        relay=relay,
        tts=tts,
        sink=BroadcastSink(),
        parser=parser,
    )


async def main():
    config = RelayConfig.from_env()
    log_dir = setup_logging()
    if not config.tts_url:
        print("⚠️ .env에 TTS_URL이 없습니다. 음성 없이 텍스트만 전송합니다.")

    controller = build_controller(config)
    app = create_app(controller)
    server = uvicorn.Server(
        uvicorn.Config(app, host=config.overlay_host, port=config.overlay_port, log_level="warning")
    )

    room_id = sys.argv[1] if len(sys.argv) > 1 else None
    if room_id:
        if not await controller.switch_room(room_id):
            print(f"❌ 채팅 연결 실패: {room_id}")

    print(f"시청자 WebSocket: ws://{config.overlay_host}:{config.overlay_port}/ws")
    print(f"로그 저장 경로: {log_dir}")
    print("채팅 수신 중... (종료: Ctrl+C)\n")
    try:
        await server.serve()
    finally:
        await controller.shutdown()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
