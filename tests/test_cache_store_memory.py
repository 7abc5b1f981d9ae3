import threading
import unittest

from runmate.cache_store.memory import InMemoryCacheStore


class TestInMemoryCacheStore(unittest.TestCase):
    def test_get_missing(self):
        self.assertIsNone(InMemoryCacheStore().get("dashboardCache:u1"))

    def test_upsert_merge_creates_then_merges(self):
        store = InMemoryCacheStore()
        store.upsert_merge("k", {"id": "u1", "greeting": "Hi", "cacheDate": "2024-07-30"})
        store.upsert_merge("k", {"greeting": "Hello", "cacheDate": "2024-07-31"})
        self.assertEqual(store.get("k"), {"id": "u1", "greeting": "Hello", "cacheDate": "2024-07-31"})

    def test_documents_are_copied(self):
        store = InMemoryCacheStore()
        doc = {"topStories": [{"title": "a"}]}
        store.upsert_merge("k", doc)
        doc["topStories"].append({"title": "b"})
        fetched = store.get("k")
        fetched["topStories"].clear()
        self.assertEqual(store.get("k"), {"topStories": [{"title": "a"}]})

    def test_records_persist_across_writes_to_other_keys(self):
        store = InMemoryCacheStore()
        store.upsert_merge("a", {"x": 1})
        store.upsert_merge("b", {"x": 2})
        self.assertEqual(store.get("a"), {"x": 1})
        self.assertFalse(hasattr(store, "clear"))

    def test_concurrent_merges_keep_all_fields(self):
        store = InMemoryCacheStore()
        threads = [threading.Thread(target=store.upsert_merge, args=("k", {f"f{i}": i})) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(len(store.get("k")), 20)


if __name__ == "__main__":
    unittest.main()
