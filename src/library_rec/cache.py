import logging
import threading
from collections import OrderedDict
from typing import Callable, Hashable

from .config import VECTOR_CACHE_SIZE
from .models import ItemVector, RecommendationFilter

logger = logging.getLogger(__name__)


class VectorCache:
    """
    Caller-owned LRU of item vectors keyed by catalog version and text toggles.

    The catalog owner bumps the version token whenever items change, or calls
    ``invalidate()``; entries for older versions simply age out.
    """

    def __init__(self, max_entries: int = VECTOR_CACHE_SIZE):
        self._max_entries = max(1, max_entries)
        self._lock = threading.Lock()
        self._entries: OrderedDict[tuple, list[ItemVector]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get_or_build(
        self,
        catalog_version: Hashable,
        rec_filter: RecommendationFilter,
        builder: Callable[[], list[ItemVector]],
    ) -> list[ItemVector]:
        key = (catalog_version, rec_filter.text_key)
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                self.hits += 1
                return self._entries[key]
            self.misses += 1

        # Build outside the lock; concurrent misses for one key just build twice
        vectors = builder()

        with self._lock:
            self._entries[key] = vectors
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted item vectors for catalog version {evicted[0]!r}")
        return vectors

    def invalidate(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("Vector cache invalidated")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
