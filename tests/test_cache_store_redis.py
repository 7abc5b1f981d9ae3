import json
import unittest

import pytest
import redis

from runmate.cache_store.redis import RedisCacheStore
from runmate.errors import CacheStoreError


class FakePipeline:
    def __init__(self, client):
        self.client = client
        self.queued = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def watch(self, key):
        self.client.watched.append(key)

    def get(self, key):
        return self.client.store.get(key)

    def multi(self):
        pass

    def set(self, key, value):
        self.queued.append((key, value))

    def execute(self):
        if self.client.conflicts:
            self.client.conflicts -= 1
            raise redis.WatchError("changed")
        for key, value in self.queued:
            self.client.store[key] = value.encode("utf-8")


class FakeRedis:
    def __init__(self, conflicts=0):
        self.store = {}
        self.watched = []
        self.conflicts = conflicts

    def get(self, key):
        return self.store.get(key)

    def pipeline(self):
        return FakePipeline(self)


class BrokenRedis(FakeRedis):
    def get(self, key):
        raise redis.ConnectionError("connection refused")

    def pipeline(self):
        raise redis.ConnectionError("connection refused")


class TestRedisCacheStore(unittest.TestCase):
    def test_roundtrip_and_merge(self):
        client = FakeRedis()
        store = RedisCacheStore(client, prefix="rm:")
        store.upsert_merge("dashboardCache:u1", {"id": "u1", "greeting": "Hi"})
        store.upsert_merge("dashboardCache:u1", {"greeting": "Hello", "cacheDate": "2024-07-30"})

        self.assertEqual(
            store.get("dashboardCache:u1"),
            {"id": "u1", "greeting": "Hello", "cacheDate": "2024-07-30"},
        )
        self.assertIn("rm:dashboardCache:u1", client.store)
        self.assertEqual(json.loads(client.store["rm:dashboardCache:u1"])["id"], "u1")

    def test_retries_on_watch_conflict(self):
        client = FakeRedis(conflicts=1)
        RedisCacheStore(client).upsert_merge("k", {"a": 1})
        self.assertEqual(client.watched, ["k", "k"])
        self.assertEqual(json.loads(client.store["k"]), {"a": 1})

    def test_gives_up_after_repeated_conflicts(self):
        with self.assertRaises(CacheStoreError):
            RedisCacheStore(FakeRedis(conflicts=10)).upsert_merge("k", {"a": 1})

    def test_unreadable_document_raises_on_get_and_is_replaced_on_merge(self):
        client = FakeRedis()
        client.store["k"] = b"not json"
        store = RedisCacheStore(client)
        with self.assertRaises(CacheStoreError):
            store.get("k")
        store.upsert_merge("k", {"a": 1})
        self.assertEqual(store.get("k"), {"a": 1})

    def test_writes_never_remove_other_documents(self):
        client = FakeRedis()
        client.store["other"] = b"{}"
        store = RedisCacheStore(client, prefix="rm:")
        store.upsert_merge("a", {"x": 1})
        store.upsert_merge("a", {"x": 2})
        self.assertEqual(sorted(client.store), ["other", "rm:a"])
        self.assertEqual(store.get("a"), {"x": 2})
        self.assertFalse(hasattr(store, "clear"))


def test_connection_errors_become_cache_store_errors():
    store = RedisCacheStore(BrokenRedis())
    with pytest.raises(CacheStoreError):
        store.get("k")
    with pytest.raises(CacheStoreError):
        store.upsert_merge("k", {"a": 1})


if __name__ == "__main__":
    unittest.main()
