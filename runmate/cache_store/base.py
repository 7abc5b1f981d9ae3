"""Shared protocol for dashboard cache backends."""

from typing import Any, Dict, Optional, Protocol


class CacheStore(Protocol):
    """Protocol for keyed document stores holding one dashboard record per user."""
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Fetch the document stored under `key`, or None if absent.

        Raises CacheStoreError when the backend cannot be read.
        """

    def upsert_merge(self, key: str, partial: Dict[str, Any]) -> None:
        """Create the document or shallow-merge `partial` into the existing one.

        Raises CacheStoreError when the backend cannot be written.
        """
