"""
로깅 시스템
명령 실행마다 세션 로그 파일을 남기고, 디버그 모드에서만 콘솔에도 출력
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional
from rich.logging import RichHandler
from rich.console import Console

console = Console()

DEFAULT_LOG_DIR = "~/.openvpn-as-docker/logs"
LOGGER_NAME = "openvpn_as_docker"
# 보관할 최근 세션 수
MAX_SESSIONS = 20

FILE_FORMAT = logging.Formatter(
    '%(asctime)s [%(levelname)s] %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)


def prune_sessions(log_dir: Path, keep: int = MAX_SESSIONS) -> list:
    """최근 keep 개 세션만 남기고 오래된 로그 파일 삭제"""
    removed = []
    for pattern in ("ovpn-as_*.log", "error_*.log"):
        files = sorted(log_dir.glob(pattern), key=lambda p: p.name, reverse=True)
        for old in files[keep:]:
            try:
                old.unlink()
                removed.append(old)
            except OSError:
                continue
    return removed


class ToolLogger:
    """ovpn-as 세션 로거"""

    def __init__(self, log_dir: str = DEFAULT_LOG_DIR, log_level: str = "INFO", debug: bool = False,
                 keep_sessions: int = MAX_SESSIONS):
        self.log_dir = Path(log_dir).expanduser()
        self.log_level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)
        self.debug_mode = debug

        self.log_dir.mkdir(parents=True, exist_ok=True)
        # 세션마다 고유한 파일 이름
        session = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        self.log_file = self.log_dir / f"ovpn-as_{session}.log"
        self.error_file = self.log_dir / f"error_{session}.log"

        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(self.log_level)
        self.logger.propagate = False
        self._close_handlers()

        self.logger.addHandler(self._file_handler(self.log_file, self.log_level))
        # 에러 로그는 첫 에러가 기록될 때 생성
        self.logger.addHandler(self._file_handler(self.error_file, logging.ERROR, delay=True))

        # 콘솔 로그는 디버그 모드에서만
        if debug:
            rich_handler = RichHandler(
                console=console,
                rich_tracebacks=True,
                show_time=False,
                show_path=True
            )
            rich_handler.setLevel(logging.DEBUG)
            self.logger.addHandler(rich_handler)

        prune_sessions(self.log_dir, keep_sessions)

    @staticmethod
    def _file_handler(path: Path, level: int, delay: bool = False) -> logging.FileHandler:
        handler = logging.FileHandler(path, encoding='utf-8', delay=delay)
        handler.setLevel(level)
        handler.setFormatter(FILE_FORMAT)
        return handler

    def _close_handlers(self):
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)

    def debug(self, message: str):
        self.logger.debug(message)

    def info(self, message: str):
        self.logger.info(message)

    def warning(self, message: str):
        self.logger.warning(message)

    def error(self, message: str):
        self.logger.error(message)

    def exception(self, message: str):
        """예외 로그 (트레이스백 포함)"""
        self.logger.exception(message)

    def get_log_files(self) -> dict:
        return {
            "main_log": str(self.log_file),
            "error_log": str(self.error_file),
            "log_dir": str(self.log_dir)
        }


_logger: Optional[ToolLogger] = None


def get_logger() -> ToolLogger:
    """현재 로거 (init_logger 전이면 기본 위치로 생성)"""
    global _logger
    if _logger is None:
        _logger = ToolLogger()
    return _logger


def init_logger(log_dir: str, log_level: str = "INFO", debug: bool = False) -> ToolLogger:
    global _logger
    _logger = ToolLogger(log_dir, log_level, debug)
    return _logger
