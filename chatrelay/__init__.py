"""라이브 채팅 → AI 캐릭터 답변 + 음성 릴레이"""

__version__ = "0.1.0"
