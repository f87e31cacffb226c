"""
세션 컨트롤러
어떤 방(민트 ID)을 듣고 있는지 관리하고, 채팅 → 필터 → 히스토리 + 큐 → AI → TTS → 브로드캐스트를 연결.

- 방 전환: 기존 연결 종료 → 히스토리/큐/중복 기록 초기화 → 새 연결
- 연결 콜백은 자기 연결이 현재 추적 중인 연결일 때만 상태를 바꿈
- 큐 워커는 한 번에 한 작업만 처리 (포워더 읽기/쓰기, 브로드캐스트 순서 보장)
"""

from __future__ import annotations

import asyncio
import base64
import functools
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from chatrelay.ai.chat_history import ChatHistory
from chatrelay.ai.forwarder_registry import ForwarderRegistry
from chatrelay.ai.models import AIResponse, ChatTurn, build_payload
from chatrelay.ai.relay_client import RelayClient, RelayError
from chatrelay.chat.base_client import ChatClient, ChatMessage
from chatrelay.chat.chat_parser import ChatParser
from chatrelay.chat.client_factory import ChatClientFactory
from chatrelay.overlay.broadcaster import BroadcastSink
from chatrelay.pipeline.job_queue import Job, JobQueue
from chatrelay.tts.tts_service import TTSError, TTSService
from chatrelay.utils.config import RelayConfig

logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    """현재 방과 연결. epoch 는 방을 바꿀 때마다 1 증가."""
    current_room_id: Optional[str] = None
    connection: Optional[ChatClient] = None
    epoch: int = 0


@dataclass
class RelayContext:
    """방 단위로 함께 초기화되는 상태 묶음."""
    history: ChatHistory
    parser: ChatParser
    queue: JobQueue
    state: SessionState = field(default_factory=SessionState)

    def reset(self) -> None:
        self.history.clear()
        dropped = self.queue.clear()
        self.parser.reset()
        if dropped:
            logger.info("대기 작업 %d개 폐기", dropped)


ClientBuilder = Callable[[str], ChatClient]


def _context_for(snapshot: list[ChatTurn], turn: ChatTurn) -> list[ChatTurn]:
    """스냅샷을 이번 턴(같은 객체)까지 자름. 윈도우에서 이미 밀려났으면 끝에 붙임."""
    for idx in range(len(snapshot) - 1, -1, -1):
        if snapshot[idx] is turn:
            return snapshot[: idx + 1]
    snapshot.append(turn)
    return snapshot


class SessionController:
    """방 전환 / 채팅 수신 / 작업 처리 진입점 (관리 API 가 호출)."""

    def __init__(
        self,
        config: RelayConfig,
        registry: ForwarderRegistry,
        relay: RelayClient,
        tts: TTSService,
        sink: BroadcastSink,
        parser: Optional[ChatParser] = None,
        client_builder: Optional[ClientBuilder] = None,
    ):
        self.config = config
        self.registry = registry
        self.relay = relay
        self.tts = tts
        self.sink = sink
        self.context = RelayContext(
            history=ChatHistory(capacity=config.history_capacity, history_dir=config.history_dir),
            parser=parser or ChatParser(),
            queue=JobQueue(self.process_job),
        )
        self._client_builder = client_builder or self._default_client
        self._switch_lock = asyncio.Lock()

    @property
    def state(self) -> SessionState:
        return self.context.state

    def _default_client(self, room_id: str) -> ChatClient:
        return ChatClientFactory.create(
            self.config.feed_platform,
            room_id,
            feed_url=self.config.feed_url,
            username=self.config.feed_username,
            origin=self.config.feed_origin,
        )

    # ---------------------------------------------------------------- 방 전환

    async def switch_room(self, room_id: Optional[str]) -> bool:
        """
        듣는 방 전환. None / 빈 문자열이면 연결 없이 대기 상태.

        Returns:
            새 연결 성공(또는 대기 상태 전환) 여부
        """
        room_id = (room_id or "").strip() or None
        async with self._switch_lock:
            state = self.state
            old = state.connection
            state.connection = None
            state.current_room_id = None
            if old is not None:
                try:
                    await old.disconnect()
                except Exception as e:
                    logger.warning("이전 연결 종료 실패 (room=%s): %s", old.room_id, e)

            state.epoch += 1
            self.context.reset()
            logger.info("방 전환: %s → %s (epoch=%d)", getattr(old, "room_id", None), room_id, state.epoch)

            if room_id is None:
                return True

            client = self._client_builder(room_id)
            client.on_message = functools.partial(self._on_feed_message, client)
            client.on_disconnect = functools.partial(self._on_feed_disconnect, client)
            state.connection = client
            state.current_room_id = room_id
            try:
                await client.connect()
            except Exception as e:
                logger.error("채팅 연결 실패 (room=%s): %s", room_id, e)
                if state.connection is client:
                    state.connection = None
                    state.current_room_id = None
                return False
            return True

    def _is_current(self, client: ChatClient) -> bool:
        return client is self.state.connection

    async def _on_feed_message(self, client: ChatClient, message: ChatMessage) -> None:
        if not self._is_current(client):
            logger.debug("이전 연결의 메시지 무시 (room=%s)", client.room_id)
            return
        self.ingest(message.user, message.message)

    async def _on_feed_disconnect(self, client: ChatClient, reason: str) -> None:
        if not self._is_current(client):
            logger.debug("이전 연결의 종료 이벤트 무시 (room=%s)", client.room_id)
            return
        logger.warning("채팅 연결 끊김 (room=%s): %s", client.room_id, reason)
        self.state.connection = None
        self.state.current_room_id = None

    # ---------------------------------------------------------------- 수신

    def ingest(self, username: str, message: str) -> Optional[ChatTurn]:
        """필터 통과 시 히스토리에 추가하고 큐에 넣음. 차단이면 None."""
        turn = self.context.parser.accept(username, message)
        if turn is None:
            return None
        self._enqueue(turn)
        return turn

    def enqueue_test_turn(self, username: str, message: str) -> Optional[ChatTurn]:
        """관리자 테스트 입력. 정규화만 하고 필터/중복 기록은 건너뜀."""
        turn = self.context.parser.normalize(username, message)
        if not turn.username or not turn.message:
            return None
        logger.info("테스트 채팅 입력: %s: %s", turn.username, turn.message[:50])
        self._enqueue(turn)
        return turn

    def _enqueue(self, turn: ChatTurn) -> None:
        self.context.history.append(turn)
        self.context.queue.enqueue(Job(turn=turn, epoch=self.state.epoch))
        logger.debug("큐 추가: %s (대기 %d)", turn.username, len(self.context.queue))

    def admin_select_forwarder(self, url: str) -> bool:
        return self.registry.admin_select(url)

    # ---------------------------------------------------------------- 작업 처리

    async def _call_ai(self, turns: list[ChatTurn]) -> Optional[AIResponse]:
        """활성 포워더로 AI 호출. 실패 시 failover 후 None."""
        forwarder = self.registry.select_active() or self.registry.failover()
        if forwarder is None:
            logger.critical("활성 포워더 없음: AI 호출 생략, 대체 답변 사용")
            return None
        try:
            return await self.relay.reply(forwarder, turns)
        except RelayError as e:
            logger.error("AI 호출 실패 (%s): %s", forwarder, e)
            self.registry.failover()
            return None

    async def _synthesize(self, response: AIResponse) -> Optional[str]:
        try:
            audio = await self.tts.synthesize(response.content, response.emotion)
        except TTSError as e:
            logger.warning("TTS 실패, 텍스트만 전송: %s", e)
            return None
        if not audio:
            return None
        return base64.b64encode(audio).decode("ascii")

    async def process_job(self, job: Job) -> None:
        """작업 하나: 히스토리 스냅샷 → AI → TTS → 브로드캐스트."""
        turn = job.turn
        snapshot = _context_for(self.context.history.snapshot(), turn)

        response = await self._call_ai(snapshot)
        if response is None:
            payload = build_payload(turn, self.config.fallback_reply, None, None)
        else:
            audio_b64 = await self._synthesize(response)
            payload = build_payload(turn, response.content, audio_b64, response.emotion)

        if self.config.discard_stale_results and job.epoch != self.state.epoch:
            logger.info(
                "방 전환 후 도착한 결과 폐기: %s (epoch %d ≠ %d)",
                turn.username,
                job.epoch,
                self.state.epoch,
            )
            return
        await self.sink.broadcast(payload)

    # ---------------------------------------------------------------- 관리

    def backup_history(self) -> Path:
        """현재 히스토리 윈도우를 backups/ 에 저장. 쓰기 실패(OSError)는 그대로 올림."""
        return self.context.history.save_manual_backup()

    def status(self) -> dict[str, Any]:
        return {
            "roomId": self.state.current_room_id,
            "connected": self.state.connection is not None,
            "epoch": self.state.epoch,
            "queueLength": len(self.context.queue),
            "processing": self.context.queue.is_processing,
            "historyLength": len(self.context.history),
            "viewers": self.sink.client_count,
        }

    async def shutdown(self) -> None:
        """채팅 연결 종료 후 처리 중인 작업 완료 대기."""
        await self.switch_room(None)
        await self.context.queue.join()
