"""
Database helper utilities for safe query execution with retry logic
"""
import sqlite3
import time
from functools import wraps
from utils.logger import get_logger

logger = get_logger(__name__)

MAX_QUERY_RETRIES = 3
QUERY_RETRY_DELAY = 0.1  # 100ms


def _is_busy(error):
    message = str(error).lower()
    return "database is locked" in message or "database is busy" in message


def db_query_with_retry(func):
    """
    Decorator to retry database queries on lock/busy errors
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        retries = 0
        while True:
            try:
                return func(*args, **kwargs)
            except sqlite3.OperationalError as e:
                if not _is_busy(e):
                    raise
                retries += 1
                if retries >= MAX_QUERY_RETRIES:
                    logger.error(f"Query failed after {MAX_QUERY_RETRIES} retries: {str(e)}")
                    raise
                wait_time = QUERY_RETRY_DELAY * retries
                logger.debug(f"Database busy, retrying {func.__name__} in {wait_time}s ({retries}/{MAX_QUERY_RETRIES})...")
                time.sleep(wait_time)

    return wrapper
