"""
Logging configuration and utilities for the Face Attendance service
"""
import logging
import os
from logging.handlers import RotatingFileHandler


def _default_log_file():
    from config import LOG_FILE
    return LOG_FILE


def _default_level():
    from config import LOG_LEVEL
    return getattr(logging, str(LOG_LEVEL).upper(), logging.INFO)


def setup_logger(name=__name__, log_file=None, level=None):
    """
    Set up a logger with file and console handlers

    Args:
        name: Logger name (usually __name__)
        log_file: Path to log file (default: config.LOG_FILE)
        level: Logging level (default: config.LOG_LEVEL)

    Returns:
        Configured logger instance
    """
    log_file = log_file or _default_log_file()
    level = level if level is not None else _default_level()

    # Create logs directory if it doesn't exist
    log_dir = os.path.dirname(log_file)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers if logger already exists
    if logger.handlers:
        return logger

    detailed_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    simple_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # File handler with rotation (10MB max, keep 5 backups)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(detailed_formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(simple_formatter)

    # Errors also go to their own file next to app.log
    error_log_file = os.path.join(log_dir, 'error.log')
    error_handler = RotatingFileHandler(
        error_log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding='utf-8'
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(detailed_formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    logger.addHandler(error_handler)

    return logger


def get_logger(name=__name__):
    """
    Get an existing logger or create a new one

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logger(name)
    return logger
