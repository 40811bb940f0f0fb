"""Tests for the MetadataStore class."""

import threading
import unittest

from adaptive_crawler.metadata_store import MetadataStore
from adaptive_crawler.models import PageMetadata


class TestMetadataStore(unittest.TestCase):
    """Verify page metadata and domain visit bookkeeping."""

    def test_put_replaces_entry(self):
        store = MetadataStore()
        store.put(PageMetadata(url="http://x/a", links_count=1))
        store.put(PageMetadata(url="http://x/a", links_count=7))
        self.assertEqual(len(store), 1)
        self.assertEqual(store.get("http://x/a").links_count, 7)

    def test_missing_url(self):
        store = MetadataStore()
        self.assertIsNone(store.get("http://x/missing"))
        self.assertFalse(store.contains("http://x/missing"))

    def test_merge_later_entries_win(self):
        store = MetadataStore()
        count = store.merge([
            PageMetadata(url="http://x/a", links_count=1),
            PageMetadata(url="http://x/a", links_count=2),
            PageMetadata(url="http://x/b"),
        ])
        self.assertEqual(count, 3)
        self.assertEqual(len(store), 2)
        self.assertEqual(store.get("http://x/a").links_count, 2)

    def test_visit_counts(self):
        store = MetadataStore()
        self.assertEqual(store.visit_count("x"), 0)
        self.assertEqual(store.increment_visit("x"), 1)
        self.assertEqual(store.increment_visit("x"), 2)
        self.assertEqual(store.domain_visits(), {"x": 2})

    def test_snapshot_is_detached(self):
        store = MetadataStore()
        store.put(PageMetadata(url="http://x/a"))
        snapshot = store.snapshot()
        snapshot.clear()
        self.assertTrue(store.contains("http://x/a"))

    def test_concurrent_increments_are_not_lost(self):
        store = MetadataStore()

        def visit():
            for _ in range(1000):
                store.increment_visit("x")

        threads = [threading.Thread(target=visit) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(store.visit_count("x"), 8000)


if __name__ == "__main__":
    unittest.main()
