"""
Proctoring Integrity Engine - Centralized Logging Configuration
Provides structured logging with file rotation for both detectors
"""

import logging
import logging.handlers
import os
import sys

from shared.config import settings


# ==================== LOG FORMAT ====================
LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)-20s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Concise format for console
CONSOLE_FORMAT = "%(asctime)s [%(levelname)-8s] %(message)s"


# ==================== SETUP FUNCTIONS ====================

def setup_logger(
    name: str,
    log_file: str = None,
    level: int = None,
    max_bytes: int = 5 * 1024 * 1024,  # 5MB per file
    backup_count: int = 5,
    console: bool = True
) -> logging.Logger:
    """
    Create a configured logger with file rotation and console output.

    Args:
        name: Logger name (e.g., 'integrity.vision', 'integrity.environment')
        log_file: Log file name (stored in the log directory). None = no file logging.
        level: Logging level. None = INTEGRITY_LOG_LEVEL setting.
        max_bytes: Max size per log file before rotation
        backup_count: Number of rotated files to keep
        console: Whether to also log to console

    Returns:
        Configured Logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding duplicate handlers
    if logger.handlers:
        return logger

    if level is None:
        level = logging.getLevelName(settings.LOG_LEVEL)
        if not isinstance(level, int):
            level = logging.INFO

    logger.setLevel(level)

    # File handler with rotation
    if log_file and settings.LOG_TO_FILE:
        log_dir = settings.LOG_DIR
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, log_file),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8"
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
        logger.addHandler(file_handler)

    # Console handler
    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, LOG_DATE_FORMAT))
        logger.addHandler(console_handler)

    return logger


# ==================== PRE-CONFIGURED LOGGERS ====================

def get_vision_logger() -> logging.Logger:
    """Logger for the visual detector (calibration, inference, frame loop)"""
    return setup_logger("integrity.vision", "vision.log")


def get_environment_logger() -> logging.Logger:
    """Logger for the environment monitor (start/stop, fullscreen, watchers)"""
    return setup_logger("integrity.environment", "environment.log")


def get_violation_logger() -> logging.Logger:
    """Logger for recorded violations and session terminations"""
    return setup_logger("integrity.violations", "violations.log")


def get_scheduler_logger() -> logging.Logger:
    """Logger for scheduled callbacks (frame ticks, devtools poll, fullscreen retry)"""
    return setup_logger("integrity.scheduling", "scheduling.log")
