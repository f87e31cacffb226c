"""유틸리티 모듈"""
from .config import RelayConfig
from .logging_config import setup_logging

__all__ = ["RelayConfig", "setup_logging"]
