"""Redis-backed dashboard cache storing one JSON document per key."""

import json
from typing import Any, Dict, Optional

import redis

from runmate.cache_store.base import CacheStore
from runmate.errors import CacheStoreError
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache_store/redis_cache_store")

# Read-merge-write runs under WATCH and is retried when the key changes
_MAX_WATCH_RETRIES = 3


class RedisCacheStore(CacheStore):
    """Documents are stored as UTF-8 JSON strings without expiry."""

    def __init__(self, client, prefix: str = "") -> None:
        """Initialize with a Redis client and an optional key prefix."""
        logger.debug("Initializing RedisCacheStore")
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    @staticmethod
    def _load(raw) -> Optional[Dict[str, Any]]:
        """Decode a stored document; raises CacheStoreError if it is not a JSON object."""
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CacheStoreError(f"Stored document is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise CacheStoreError("Stored document is not a JSON object")
        return data

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            raw = self.client.get(self._key(key))
        except redis.RedisError as exc:
            logger.error("Failed to read dashboard cache from Redis: %s", exc)
            raise CacheStoreError(str(exc)) from exc
        return self._load(raw)

    def upsert_merge(self, key: str, partial: Dict[str, Any]) -> None:
        """Merge `partial` into the stored document, retrying on concurrent modification."""
        rkey = self._key(key)
        try:
            for _ in range(_MAX_WATCH_RETRIES):
                with self.client.pipeline() as pipe:
                    try:
                        pipe.watch(rkey)
                        try:
                            current = self._load(pipe.get(rkey)) or {}
                        except CacheStoreError as exc:
                            logger.warning("Overwriting unreadable cache document", extra={"key": rkey, "error": str(exc)})
                            current = {}
                        current.update(partial)
                        pipe.multi()
                        pipe.set(rkey, json.dumps(current))
                        pipe.execute()
                        return
                    except redis.WatchError:
                        logger.debug("Cache document changed during merge; retrying", extra={"key": rkey})
            raise CacheStoreError(f"Gave up merging {rkey} after {_MAX_WATCH_RETRIES} attempts")
        except redis.RedisError as exc:
            logger.error("Failed to write dashboard cache to Redis: %s", exc)
            raise CacheStoreError(str(exc)) from exc
