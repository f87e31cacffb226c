"""
시청자 WebSocket + 관리 API 서버.
반드시 run_relay.py 안에서 실행 (같은 프로세스에서 세션 컨트롤러 공유).

- WS  /ws                      시청자 브로드캐스트 수신
- GET /api/state               세션 상태 + 최근 결과
- POST /api/room               방 전환 {"roomId": "..." | null}
- POST /api/test-chat          테스트 채팅 입력 {"username", "message"}
- POST /api/history/backup      히스토리 수동 백업 (history/backups/)
- GET/POST /api/forwarders     포워더 목록 / 추가
- POST /api/forwarders/select  포워더 수동 선택 {"url"}
- POST /api/forwarders/reset   사용량 제한 표시 초기화
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from chatrelay.overlay.state import overlay_state
from chatrelay.pipeline.session import SessionController

logger = logging.getLogger(__name__)


class RoomRequest(BaseModel):
    roomId: Optional[str] = None


class TestChatRequest(BaseModel):
    username: str
    message: str


class ForwarderRequest(BaseModel):
    url: str


def create_app(controller: SessionController) -> FastAPI:
    app = FastAPI(title="ChatRelay", docs_url=None, redoc_url=None)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST"],
    )

    @app.websocket("/ws")
    async def viewer_socket(websocket: WebSocket):
        """시청자 연결. 보내는 메시지는 무시하고 연결만 유지."""
        await websocket.accept()
        controller.sink.register(websocket)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            controller.sink.unregister(websocket)

    @app.get("/api/state")
    def get_state():
        """세션 상태(방, 큐 길이, 처리 중 여부)와 최근 결과 반환."""
        return JSONResponse({
            **controller.status(),
            "recent_results": list(overlay_state.get("recent_results") or []),
        })

    @app.post("/api/room")
    async def switch_room(body: RoomRequest):
        ok = await controller.switch_room(body.roomId)
        logger.info("관리 API: room=%s ok=%s", body.roomId, ok)
        if not ok:
            raise HTTPException(status_code=502, detail="채팅 연결 실패")
        return JSONResponse({"ok": True, "roomId": controller.state.current_room_id})

    @app.post("/api/test-chat")
    async def test_chat(body: TestChatRequest):
        turn = controller.enqueue_test_turn(body.username, body.message)
        if turn is None:
            raise HTTPException(status_code=400, detail="username / message 가 비어 있습니다")
        return JSONResponse({
            "ok": True,
            "username": turn.username,
            "message": turn.message,
            "queueLength": len(controller.context.queue),
        })

    @app.post("/api/history/backup")
    async def backup_history():
        """히스토리 수동 백업. 워커와 같은 이벤트 루프에서 실행."""
        try:
            path = controller.backup_history()
        except OSError as e:
            logger.error("히스토리 백업 실패: %s", e)
            raise HTTPException(status_code=500, detail="히스토리 백업 실패")
        return JSONResponse({
            "ok": True,
            "path": str(path),
            "messageCount": len(controller.context.history),
        })

    @app.get("/api/forwarders")
    def list_forwarders():
        return JSONResponse([e.to_dict() for e in controller.registry.entries()])

    @app.post("/api/forwarders")
    def add_forwarder(body: ForwarderRequest):
        if not controller.registry.add(body.url):
            raise HTTPException(status_code=400, detail="추가 실패 (빈 url 또는 중복)")
        return JSONResponse({"ok": True})

    @app.post("/api/forwarders/select")
    def select_forwarder(body: ForwarderRequest):
        if not controller.admin_select_forwarder(body.url):
            raise HTTPException(status_code=404, detail="목록에 없는 포워더")
        logger.info("관리 API: forwarder=%s", body.url)
        return JSONResponse({"ok": True, "selected": body.url})

    @app.post("/api/forwarders/reset")
    def reset_forwarders():
        if not controller.registry.reset_limits():
            raise HTTPException(status_code=500, detail="포워더 목록 저장 실패")
        return JSONResponse({"ok": True})

    return app
