"""
채팅 히스토리 관리
최근 N개 턴만 유지하는 슬라이딩 윈도우. AI 요청 컨텍스트로 사용.
방 전환 시 비움. 수동 백업(history/backups/)은 유지.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Deque, List, Optional

from .models import ChatTurn

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent.parent


class ChatHistory:
    """
    개수 기반 슬라이딩 윈도우 (FIFO).
    capacity 를 넘으면 가장 오래된 턴이 빠짐.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        history_dir: Optional[Path] = None,
    ):
        self.capacity = int(capacity)
        if self.capacity < 1:
            raise ValueError(f"capacity는 1 이상이어야 합니다: {self.capacity}")
        self.root = Path(history_dir or (_project_root() / "history"))
        self._turns: Deque[ChatTurn] = deque(maxlen=self.capacity)

    def __len__(self) -> int:
        return len(self._turns)

    def append(self, turn: ChatTurn) -> None:
        """턴 추가. 가득 차 있으면 가장 오래된 턴 제거."""
        self._turns.append(turn)

    def snapshot(self) -> List[ChatTurn]:
        """현재 시점 복사본. 이후 append/clear 의 영향을 받지 않음."""
        return list(self._turns)

    def clear(self) -> None:
        self._turns.clear()

    def to_prompt_items(self) -> List[dict]:
        return [t.to_prompt_item() for t in self._turns]

    def save_manual_backup(self) -> Path:
        """
        현재 윈도우 전체를 타임스탬프 파일로 저장 (수동 백업).
        history/backups/backup_YYYYMMDD_HHMMSS.json
        """
        backups_dir = self.root / "backups"
        backups_dir.mkdir(parents=True, exist_ok=True)
        now = datetime.now(timezone.utc)
        path = backups_dir / f"backup_{now.strftime('%Y%m%d_%H%M%S')}.json"
        data = {
            "messages": self.to_prompt_items(),
            "message_count": len(self._turns),
            "timestamp": now.isoformat(),
        }
        path.write_text(json.dumps(data, ensure_ascii=False, indent=0), encoding="utf-8")
        logger.info("수동 백업 저장: %s", path)
        return path
