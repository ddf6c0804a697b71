"""
Unified output system using Loguru.
Routes user-facing messages to the log file and, outside the terminal UI, to stdout.
"""

import threading
from pathlib import Path

from loguru import logger

# Set while the terminal UI owns the screen
_screen_mode_active = False
_screen_mode_lock = threading.Lock()


def setup_loguru(
    log_file: Path,
    level: str = "INFO",
    rotation_mb: int = 10,
    retention: int = 5,
) -> None:
    """
    Configure loguru for file-only logging (the terminal UI owns the console).

    Args:
        log_file: Path to log file
        level: Minimum level for file logging (DEBUG, INFO, WARNING, ERROR)
        rotation_mb: Rotate the log file once it reaches this size
        retention: Number of rotated files to keep
    """
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # Remove default handler
    logger.remove()

    logger.add(
        log_file,
        rotation=f"{rotation_mb} MB",
        retention=retention,
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}",
        enqueue=False,
    )

    logger.info(f"Loguru initialized: {log_file} (level={level})")


def set_screen_mode(active: bool) -> None:
    """Suppress (or restore) stdout printing from log() while the terminal UI runs."""
    global _screen_mode_active
    with _screen_mode_lock:
        _screen_mode_active = active
        logger.debug(f"Screen mode {'enabled' if active else 'disabled'}")


def log(message: str, level: str = "info") -> None:
    """
    Unified logging: writes to the log file and prints when no UI owns the screen.

    Args:
        message: User-facing message
        level: Log level (debug, info, warning, error)
    """
    log_func = getattr(logger, level)
    log_func(message)

    with _screen_mode_lock:
        if not _screen_mode_active:
            print(message)
