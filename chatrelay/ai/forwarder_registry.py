"""
AI 릴레이 포워더 목록 관리
config/forwarders.json 에 [{url, isUsageLimited, selected}, ...] 형식으로 저장.

- 활성 포워더: selected=True 인 항목 하나
- failover: 현재 포워더를 사용량 제한으로 표시하고 다음 사용 가능 항목으로 전환
- 모든 변경은 목록 전체를 읽고 → 수정 → 다시 씀 (부분 갱신 없음)
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import List, Optional, Union

import httpx

from .models import ForwarderEntry

logger = logging.getLogger(__name__)


class ForwarderStoreError(Exception):
    """포워더 목록 파일 읽기/쓰기 실패"""


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent.parent


def default_forwarders_path() -> Path:
    return _project_root() / "config" / "forwarders.json"


def is_valid_forwarder_url(url: str) -> bool:
    """http(s) 절대 URL 인지. 형식이 깨진 URL 은 httpx 가 거부."""
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.host)


class ForwarderRegistry:
    """포워더 목록 (파일 기반). 관리 API 스레드와 워커가 함께 쓰므로 락으로 직렬화."""

    def __init__(self, path: Optional[Union[Path, str]] = None):
        self.path = Path(path) if path else default_forwarders_path()
        self._lock = threading.Lock()

    def load(self) -> List[ForwarderEntry]:
        """
        목록 전체 로드. 파일이 없으면 빈 목록.

        Raises:
            ForwarderStoreError: 읽기/파싱 실패
        """
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ForwarderStoreError(f"포워더 목록 로드 실패 {self.path}: {e}") from e
        if not isinstance(data, list):
            raise ForwarderStoreError(f"포워더 목록 형식 오류 (list 아님): {self.path}")
        try:
            return [ForwarderEntry.from_dict(item) for item in data]
        except (TypeError, ValueError, AttributeError) as e:
            raise ForwarderStoreError(f"포워더 항목 형식 오류: {e}") from e

    def save(self, entries: List[ForwarderEntry]) -> None:
        """
        목록 전체 저장. 임시 파일에 쓴 뒤 교체하므로 실패 시 기존 파일 유지.

        Raises:
            ForwarderStoreError: 쓰기 실패
        """
        payload = json.dumps([e.to_dict() for e in entries], ensure_ascii=False, indent=2)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise ForwarderStoreError(f"포워더 목록 저장 실패 {self.path}: {e}") from e

    def entries(self) -> List[ForwarderEntry]:
        """관리 화면용 목록. 실패 시 빈 목록."""
        with self._lock:
            try:
                return self.load()
            except ForwarderStoreError as e:
                logger.error("%s", e)
                return []

    def select_active(self) -> Optional[str]:
        """selected=True 인 포워더 URL. 없거나 로드 실패면 None."""
        with self._lock:
            try:
                entries = self.load()
            except ForwarderStoreError as e:
                logger.error("%s", e)
                return None
        for entry in entries:
            if entry.selected:
                return entry.url
        return None

    def failover(self) -> Optional[str]:
        """
        현재 포워더를 사용량 제한으로 표시하고 목록 순서상 첫 번째 사용 가능 포워더를 선택.

        Returns:
            새로 선택된 URL. 남은 포워더가 없으면 None (비활성화 내용은 그대로 저장).
        """
        with self._lock:
            try:
                entries = self.load()
            except ForwarderStoreError as e:
                logger.error("failover 중단: %s", e)
                return None

            for entry in entries:
                if entry.selected:
                    logger.warning("포워더 사용량 제한 처리: %s", entry.url)
                    entry.is_usage_limited = True
                    entry.selected = False

            promoted: Optional[ForwarderEntry] = None
            for entry in entries:
                if not entry.is_usage_limited:
                    entry.selected = True
                    promoted = entry
                    break

            try:
                self.save(entries)
            except ForwarderStoreError as e:
                logger.error("failover 저장 실패: %s", e)
                return None

        if promoted is None:
            logger.critical(
                "사용 가능한 포워더가 없습니다 (%d개 모두 사용량 제한). AI 호출 불가.",
                len(entries),
            )
            return None
        logger.info("포워더 전환: %s", promoted.url)
        return promoted.url

    def admin_select(self, url: str) -> bool:
        """url 과 일치하는 항목만 selected=True (사용량 제한 여부 무시). 없는 url이면 False."""
        url = (url or "").strip()
        with self._lock:
            try:
                entries = self.load()
            except ForwarderStoreError as e:
                logger.error("%s", e)
                return False
            if not any(e.url == url for e in entries):
                logger.warning("관리자 포워더 선택: 목록에 없는 url %s", url)
                return False
            for entry in entries:
                entry.selected = entry.url == url
            try:
                self.save(entries)
            except ForwarderStoreError as e:
                logger.error("%s", e)
                return False
        logger.info("관리자 포워더 선택: %s", url)
        return True

    def add(self, url: str) -> bool:
        """목록 끝에 새 포워더 추가. 이미 있거나 http(s) URL 이 아니면 False."""
        url = (url or "").strip()
        if not is_valid_forwarder_url(url):
            logger.warning("포워더 추가 거부 (URL 형식 오류): %r", url)
            return False
        with self._lock:
            try:
                entries = self.load()
                if any(e.url == url for e in entries):
                    return False
                entries.append(ForwarderEntry(url=url))
                self.save(entries)
            except ForwarderStoreError as e:
                logger.error("%s", e)
                return False
        logger.info("포워더 추가: %s", url)
        return True

    def reset_limits(self) -> bool:
        """모든 포워더의 사용량 제한 표시 해제 (선택 상태는 유지)."""
        with self._lock:
            try:
                entries = self.load()
                for entry in entries:
                    entry.is_usage_limited = False
                self.save(entries)
            except ForwarderStoreError as e:
                logger.error("%s", e)
                return False
        logger.info("포워더 사용량 제한 초기화: %d개", len(entries))
        return True
