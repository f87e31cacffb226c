"""음성 합성 모듈"""
from .tts_service import EMOTION_TO_STYLE, TTSError, TTSService, emotion_to_style

__all__ = ["EMOTION_TO_STYLE", "TTSError", "TTSService", "emotion_to_style"]
