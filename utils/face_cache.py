"""
Enrolled-template cache to avoid reloading from database on every recognition
"""
import threading
import time
from utils.logger import get_logger

logger = get_logger(__name__)


class TemplateCache:
    """
    Holds the enrolled (employee, template) set for ``ttl`` seconds.

    One instance is owned by the Flask app. Any enrollment change must call
    clear(); otherwise staleness is bounded by the ttl.
    """

    def __init__(self, ttl=300, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._enrolled = None
        self._loaded_at = 0.0
        self._generation = 0

    def get(self):
        """
        Get the cached enrolled set if available and not expired

        Returns:
            list of (employee, template) or None on miss
        """
        with self._lock:
            if self._enrolled is None:
                return None
            age = self._clock() - self._loaded_at
            if age >= self.ttl:
                return None
            logger.debug(f"Using cached face templates (age: {age:.1f}s)")
            return list(self._enrolled)

    @property
    def generation(self):
        """Incremented by every clear()"""
        with self._lock:
            return self._generation

    def update(self, enrolled, generation=None):
        """
        Store a freshly loaded set.

        Args:
            enrolled: list of (employee, template)
            generation: Value of ``generation`` read before loading; the set is
                discarded if clear() ran since then

        Returns:
            True if the set was stored
        """
        with self._lock:
            if generation is not None and generation != self._generation:
                logger.debug("Discarding face templates loaded before the last cache clear")
                return False
            self._enrolled = list(enrolled)
            self._loaded_at = self._clock()
            logger.debug(f"Template cache updated with {len(self._enrolled)} templates")
            return True

    def clear(self):
        """Drop the cached set (call after any enrollment change)"""
        with self._lock:
            self._enrolled = None
            self._loaded_at = 0.0
            self._generation += 1
            logger.info("Template cache cleared")

    def get_or_load(self, loader):
        """
        Get templates from cache if available, otherwise call loader()

        Args:
            loader: Zero-argument callable returning the enrolled set
        """
        enrolled = self.get()
        if enrolled is not None:
            return enrolled

        logger.debug("Cache miss - loading face templates from database")
        generation = self.generation
        enrolled = loader()
        self.update(enrolled, generation)
        return list(enrolled)
