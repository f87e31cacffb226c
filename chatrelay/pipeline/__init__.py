"""채팅 처리 파이프라인 (작업 큐, 세션 컨트롤러)"""
from .job_queue import Job, JobQueue
from .session import RelayContext, SessionController, SessionState

__all__ = ["Job", "JobQueue", "RelayContext", "SessionController", "SessionState"]
