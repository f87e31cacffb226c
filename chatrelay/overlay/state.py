"""오버레이용 공유 상태. 최근 브로드캐스트 결과를 /api/state 로 노출."""

import time
from typing import Any

# 최근 결과 (오디오 제외): [{ "username", "userMessage", "message", "emotion", "ts" }, ...]
overlay_state: dict[str, Any] = {
    "recent_results": [],
}
MAX_RECENT_RESULTS = 50


def record_result(payload: dict[str, Any]) -> None:
    """브로드캐스트 결과 기록. 오래된 것부터 잘라 MAX_RECENT_RESULTS 유지."""
    entry = {k: v for k, v in payload.items() if k != "audio"}
    entry["has_audio"] = payload.get("audio") is not None
    entry["ts"] = time.time()
    results = overlay_state.setdefault("recent_results", [])
    results.append(entry)
    if len(results) > MAX_RECENT_RESULTS:
        overlay_state["recent_results"] = results[-MAX_RECENT_RESULTS:]

