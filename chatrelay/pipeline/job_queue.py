"""
채팅 턴 작업 큐 + 순차 워커
들어온 순서대로 한 번에 하나씩만 AI → TTS → 브로드캐스트 처리.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, Optional

from chatrelay.ai.models import ChatTurn

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Job:
    """큐 항목. epoch 는 턴이 들어온 시점의 방 세대 번호."""
    turn: ChatTurn
    epoch: int = 0


JobHandler = Callable[[Job], Awaitable[None]]


class JobQueue:
    """
    FIFO 큐 + 단일 drain 루프.
    drain 중에 다시 호출되면 무시 (진행 중인 루프가 새 항목까지 처리).
    """

    def __init__(self, handler: JobHandler):
        self._handler = handler
        self._jobs: Deque[Job] = deque()
        self._processing = False
        self._drain_task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._jobs)

    @property
    def is_processing(self) -> bool:
        return self._processing

    def enqueue(self, job: Job) -> None:
        """꼬리에 추가하고 drain 요청. 실행 중인 이벤트 루프 안에서 호출해야 함."""
        self._jobs.append(job)
        if self._processing:
            return
        if self._drain_task is not None and not self._drain_task.done():
            return
        loop = asyncio.get_running_loop()
        self._drain_task = loop.create_task(self.drain())

    async def drain(self) -> None:
        """큐가 빌 때까지 하나씩 처리. 작업 하나의 예외가 루프를 멈추지 않음."""
        if self._processing:
            return
        self._processing = True
        try:
            while self._jobs:
                job = self._jobs.popleft()
                try:
                    await self._handler(job)
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception("작업 처리 실패 (%s)", job.turn.username)
        finally:
            self._processing = False

    def clear(self) -> int:
        """대기 중인 작업 전부 제거 (처리 중인 작업은 그대로). 제거한 개수 반환."""
        dropped = len(self._jobs)
        self._jobs.clear()
        return dropped

    async def join(self) -> None:
        """현재 drain 이 끝날 때까지 대기."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)
