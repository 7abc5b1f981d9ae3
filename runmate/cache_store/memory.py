"""In-memory dashboard cache, intended for development and tests."""

import copy
import threading
from typing import Any, Dict, Optional

from runmate.cache_store.base import CacheStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache_store/in_memory_cache_store")


class InMemoryCacheStore(CacheStore):
    """Thread-safe dict-backed store; documents are copied in and out."""

    def __init__(self) -> None:
        logger.debug("Initializing InMemoryCacheStore")
        self._docs: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._docs.get(key)
            return copy.deepcopy(doc) if doc is not None else None

    def upsert_merge(self, key: str, partial: Dict[str, Any]) -> None:
        """Merge top-level fields of `partial` into the stored document."""
        with self._lock:
            doc = self._docs.setdefault(key, {})
            doc.update(copy.deepcopy(partial))
