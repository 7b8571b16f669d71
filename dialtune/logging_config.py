"""Logging configuration using Loguru.

Provides:
- Console output for development
- File rotation for production
- An in-memory tail of recent lines for the diagnostics view
- No raw caller numbers in logs
"""

import sys
from collections import deque
from pathlib import Path
from threading import Lock

from loguru import logger

BUFFER_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} | {message}"


class LogBuffer:
    """Bounded ring of formatted log lines, usable as a loguru sink."""

    def __init__(self, max_lines: int = 500) -> None:
        self._lines: deque[str] = deque(maxlen=max_lines)
        self._lock = Lock()

    def write(self, message: str) -> None:
        with self._lock:
            self._lines.append(str(message).rstrip("\n"))

    def resize(self, max_lines: int) -> None:
        with self._lock:
            self._lines = deque(self._lines, maxlen=max_lines)

    def tail(self, limit: int | None = None) -> list[str]:
        with self._lock:
            lines = list(self._lines)
        if limit is not None:
            lines = lines[-limit:] if limit > 0 else []
        return lines

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()

    def __len__(self) -> int:
        return len(self._lines)


log_buffer = LogBuffer()


def setup_logging(
    level: str = "INFO",
    log_dir: str = "logs",
    enable_file: bool = True,
    buffer_lines: int = 500,
) -> None:
    """Configure application logging.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for log files
        enable_file: Whether to enable file logging
        buffer_lines: Lines kept in memory for the diagnostics view
    """
    # Remove default handler
    logger.remove()

    # Console handler (always enabled)
    logger.add(
        sys.stderr,
        format=(
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        ),
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=True,  # Disable in production for security
    )

    # Diagnostics tail
    log_buffer.resize(buffer_lines)
    logger.add(
        log_buffer.write,
        format=BUFFER_FORMAT,
        level=level,
        colorize=False,
        backtrace=False,
        diagnose=False,
    )

    # File handler (production)
    if enable_file:
        log_path = Path(log_dir)
        log_path.mkdir(exist_ok=True)

        logger.add(
            log_path / "dialtune_{time:YYYY-MM-DD}.log",
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{level: <8} | "
                "{name}:{function}:{line} | "
                "{message}"
            ),
            level=level,
            rotation="100 MB",
            retention="30 days",
            compression="gz",
            backtrace=True,
            diagnose=False,  # Disabled for security in files
        )

        # Error-only log for quick debugging
        logger.add(
            log_path / "errors_{time:YYYY-MM-DD}.log",
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{level: <8} | "
                "{name}:{function}:{line} | "
                "{message}\n{exception}"
            ),
            level="ERROR",
            rotation="50 MB",
            retention="90 days",
            compression="gz",
            backtrace=True,
            diagnose=False,
        )

    logger.info(f"Logging initialized at {level} level")


def get_logger(name: str) -> "logger":
    """Get a logger instance with the given name.

    Usage:
        from dialtune.logging_config import get_logger
        logger = get_logger(__name__)
        logger.info("Message")
    """
    return logger.bind(name=name)


def mask_phone(phone: str) -> str:
    """Mask phone number for logging: 972548498889 -> 97XXXX8889.

    Use this before logging any caller number.
    """
    if not phone or len(phone) < 6:
        return "XXXX"
    return f"{phone[:2]}XXXX{phone[-4:]}"
