"""
로깅 시스템
콘솔(Rich) 로깅 및 선택적 파일 로깅, 디버그 모드 지원
"""

import logging
import os
from datetime import datetime
from typing import Optional
from rich.logging import RichHandler
from rich.console import Console

console = Console(stderr=True)


class AgentLogger:
    """에이전트 로거"""

    def __init__(self, log_dir: Optional[str] = None, log_level: str = "INFO", debug: bool = False):
        self.log_dir = log_dir
        self.log_level = logging.DEBUG if debug else getattr(logging, log_level.upper())
        self.debug_mode = debug
        self.log_file = None
        self.error_file = None

        self.logger = logging.getLogger("k8s_vpn_mesh")
        self.logger.setLevel(self.log_level)

        # 기존 핸들러 제거
        self.logger.handlers.clear()

        # 파일 핸들러 (log_dir 지정 시)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.log_file = os.path.join(log_dir, f"mesh_{timestamp}.log")
            self.error_file = os.path.join(log_dir, f"error_{timestamp}.log")

            file_formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )

            file_handler = logging.FileHandler(self.log_file, encoding='utf-8')
            file_handler.setLevel(self.log_level)
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

            error_handler = logging.FileHandler(self.error_file, encoding='utf-8')
            error_handler.setLevel(logging.ERROR)
            error_handler.setFormatter(file_formatter)
            self.logger.addHandler(error_handler)

        # 콘솔 핸들러 (Rich)
        rich_handler = RichHandler(
            console=console,
            rich_tracebacks=True,
            show_time=True,
            show_path=debug
        )
        rich_handler.setLevel(self.log_level)
        self.logger.addHandler(rich_handler)

    def debug(self, message: str):
        self.logger.debug(message)

    def info(self, message: str):
        self.logger.info(message)

    def warning(self, message: str):
        self.logger.warning(message)

    def error(self, message: str):
        self.logger.error(message)

    def critical(self, message: str):
        self.logger.critical(message)


# 글로벌 로거 인스턴스
_logger: Optional[AgentLogger] = None


def get_logger() -> AgentLogger:
    """로거 인스턴스 가져오기 (초기화 전이면 콘솔 전용 로거 생성)"""
    global _logger
    if _logger is None:
        _logger = AgentLogger()
    return _logger


def init_logger(log_dir: Optional[str], log_level: str, debug: bool) -> AgentLogger:
    """로거 초기화"""
    global _logger
    _logger = AgentLogger(log_dir or None, log_level, debug)
    return _logger
