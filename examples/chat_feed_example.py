"""
라이브 채팅 수신 + 필터 예제 (AI/TTS 호출 없음)

실행: python examples/chat_feed_example.py ROOM_ID  (프로젝트 루트에서)
통과한 채팅은 그대로, 차단된 채팅은 [차단] 표시로 출력합니다.
"""

import sys
from pathlib import Path

# 프로젝트 루트를 path에 넣어서 'import chatrelay' 가능하게 함
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import asyncio

from chatrelay.chat import ChatClientFactory, ChatMessage, ChatParser, FilterConfig
from chatrelay.utils import RelayConfig, setup_logging


async def main():
    if len(sys.argv) < 2:
        print("❌ 방(민트) ID를 인자로 넣어주세요: python examples/chat_feed_example.py ROOM_ID")
        return
    room_id = sys.argv[1]
    config = RelayConfig.from_env()
    log_dir = setup_logging()
    parser = ChatParser(FilterConfig.from_file(config.filter_policy_path))

    def on_chat_message(message: ChatMessage):
        turn = parser.accept(message.user, message.message)
        if turn is None:
            print(f"[차단] {message.user}: {message.message}")
        else:
            print(f"[{message.timestamp:%H:%M:%S}] {turn.username}: {turn.message}")

    def on_disconnect(reason: str):
        print(f"연결 종료: {reason}")

    client = ChatClientFactory.create(
        platform=config.feed_platform,
        room_id=room_id,
        feed_url=config.feed_url,
        username=config.feed_username,
        origin=config.feed_origin,
        on_message=on_chat_message,
        on_disconnect=on_disconnect,
    )

    print(f"플랫폼: {client.platform_name}, 방: {room_id}")
    print(f"로그 저장 경로: {log_dir}")
    print("채팅 수신 중... (종료: Ctrl+C)\n")
    await client.connect()
    try:
        while client.is_connected:
            await asyncio.sleep(1)
    finally:
        await client.disconnect()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
