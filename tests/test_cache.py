import tempfile
import unittest
from pathlib import Path

from termdeck.cache import ContentCache, LruMap, cache_key
from tests.helpers import same_pixels, solid


class TestCacheKey(unittest.TestCase):
    def test_deterministic_sha256_hex(self):
        key = cache_key("https://example.com/cover.jpg")
        self.assertEqual(key, cache_key("https://example.com/cover.jpg"))
        self.assertEqual(len(key), 64)
        int(key, 16)

    def test_distinct_inputs_distinct_keys(self):
        urls = [f"https://example.com/{i}.jpg" for i in range(200)]
        self.assertEqual(len({cache_key(u) for u in urls}), len(urls))


class TestLruMap(unittest.TestCase):
    def test_zero_capacity_fails_fast(self):
        with self.assertRaises(ValueError):
            LruMap(0)

    def test_overflow_evicts_least_recent(self):
        lru = LruMap(3)
        for k in "abc":
            lru.put(k, k.upper())
        evicted = lru.put("d", "D")
        self.assertEqual(evicted, "a")
        self.assertNotIn("a", lru)
        self.assertEqual(len(lru), 3)

    def test_get_promotes(self):
        lru = LruMap(3)
        for k in "abc":
            lru.put(k, k.upper())
        self.assertEqual(lru.get("a"), "A")
        lru.put("d", "D")
        self.assertIn("a", lru)
        self.assertNotIn("b", lru)

    def test_reinsert_refreshes(self):
        lru = LruMap(2)
        lru.put("a", 1)
        lru.put("b", 2)
        lru.put("a", 3)
        lru.put("c", 4)
        self.assertEqual(lru.get("a"), 3)
        self.assertIsNone(lru.get("b"))


class TestContentCache(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name) / "artwork"

    def tearDown(self):
        self._tmp.cleanup()

    def test_zero_capacity_fails_fast(self):
        with self.assertRaises(ValueError):
            ContentCache(self.dir, 0)

    def test_miss_returns_none(self):
        cache = ContentCache(self.dir, 4)
        self.assertIsNone(cache.get("https://example.com/none.jpg"))

    def test_insert_then_get(self):
        cache = ContentCache(self.dir, 4)
        img = solid((200, 10, 30))
        cache.insert("u1", img)
        self.assertTrue(same_pixels(cache.get("u1"), img))

    def test_insert_creates_dir_and_png(self):
        cache = ContentCache(self.dir, 4)
        cache.insert("u1", solid((1, 2, 3)))
        path = cache.path_for("u1")
        self.assertEqual(path, self.dir / f"{cache_key('u1')}.png")
        self.assertTrue(path.is_file())
        self.assertEqual(list(self.dir.glob("*.tmp")), [])

    def test_survives_restart(self):
        img = solid((9, 99, 199), size=(8, 5))
        ContentCache(self.dir, 4).insert("u1", img)

        fresh = ContentCache(self.dir, 4)
        got = fresh.get("u1")
        self.assertIsNotNone(got)
        self.assertTrue(same_pixels(got, img))
        self.assertIn("u1", fresh)

    def test_evicted_entry_comes_back_from_disk(self):
        cache = ContentCache(self.dir, 1)
        first = solid((255, 0, 0))
        cache.insert("a", first)
        cache.insert("b", solid((0, 255, 0)))
        self.assertTrue(same_pixels(cache.get("a"), first))

    def test_corrupt_file_is_a_miss(self):
        cache = ContentCache(self.dir, 4)
        self.dir.mkdir(parents=True)
        cache.path_for("bad").write_bytes(b"definitely not a png")
        self.assertIsNone(cache.get("bad"))

    def test_write_failure_keeps_memory_entry(self):
        blocker = Path(self._tmp.name) / "not-a-dir"
        blocker.write_text("x")
        cache = ContentCache(blocker / "artwork", 4)
        img = solid((5, 5, 5))

        cache.insert("u1", img)

        self.assertTrue(same_pixels(cache.get("u1"), img))
        self.assertIsNone(ContentCache(blocker / "artwork", 4).get("u1"))


if __name__ == "__main__":
    unittest.main(verbosity=2)
