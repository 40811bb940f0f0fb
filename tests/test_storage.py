"""Tests for version history stores and JSON snapshots."""

import json
import os
import shutil
import tempfile
import unittest
from datetime import datetime, timedelta

from adaptive_crawler.change_detector import ContentChangeDetector
from adaptive_crawler.errors import StorageError
from adaptive_crawler.models import PageVersion
from adaptive_crawler.storage import JsonlVersionStore, read_json_snapshot, write_json_snapshot


def _version(content: str, scraper_id: str = "s1", age_minutes: int = 0) -> PageVersion:
    return PageVersion(
        url="https://example.com/page",
        content=content,
        text_content=content,
        content_hash=content,
        version_date=datetime(2024, 1, 1, 12, 0) - timedelta(minutes=age_minutes),
        scraper_id=scraper_id,
    )


class TestJsonSnapshot(unittest.TestCase):
    """Verify atomic JSON snapshot files."""

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_missing_file_reads_empty(self):
        self.assertEqual(read_json_snapshot(os.path.join(self.tmp_dir, "absent.json")), {})

    def test_write_creates_directories(self):
        path = os.path.join(self.tmp_dir, "nested", "profiles.json")
        write_json_snapshot(path, {"a.example": {"current_delay_ms": 1500}})
        self.assertEqual(read_json_snapshot(path), {"a.example": {"current_delay_ms": 1500}})
        self.assertFalse(os.path.exists(path + ".tmp"))

    def test_corrupt_file_raises_storage_error(self):
        path = os.path.join(self.tmp_dir, "broken.json")
        with open(path, "w", encoding="utf-8") as f:
            f.write("{not json")
        with self.assertRaises(StorageError):
            read_json_snapshot(path)

    def test_non_object_raises_storage_error(self):
        path = os.path.join(self.tmp_dir, "list.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump([1, 2], f)
        with self.assertRaises(StorageError):
            read_json_snapshot(path)


class TestJsonlVersionStore(unittest.TestCase):
    """Verify the background JSONL writer and reader."""

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.path = os.path.join(self.tmp_dir, "versions.jsonl")

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_writes_one_line_per_version(self):
        store = JsonlVersionStore(self.path)
        store.save(_version("one"))
        store.save(_version("two"))
        store.close()
        with open(self.path, "r", encoding="utf-8") as f:
            lines = [json.loads(line) for line in f if line.strip()]
        self.assertEqual([line["content"] for line in lines], ["one", "two"])

    def test_load_filters_scraper_newest_first(self):
        """Versions come back in reverse append order."""
        store = JsonlVersionStore(self.path)
        store.save(_version("older", age_minutes=10))
        store.save(_version("newer", age_minutes=1))
        store.save(_version("other", scraper_id="s2"))
        store.flush()
        history = store.load("s1")
        store.close()
        self.assertEqual([v.content for v in history["https://example.com/page"]], ["newer", "older"])

    def test_unreadable_lines_are_skipped(self):
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("garbage\n")
            f.write(json.dumps(_version("ok").to_dict()) + "\n")
        store = JsonlVersionStore(self.path)
        history = store.load("s1")
        store.close()
        self.assertEqual(len(history["https://example.com/page"]), 1)

    def test_unopenable_path_raises_on_construction(self):
        """A directory in place of the file fails up front instead of in the writer."""
        os.mkdir(self.path)
        with self.assertRaises(OSError):
            JsonlVersionStore(self.path)

    def test_flush_returns_after_writes(self):
        store = JsonlVersionStore(self.path)
        store.save(_version("one"))
        store.flush()
        with open(self.path, "r", encoding="utf-8") as f:
            self.assertEqual(len([line for line in f if line.strip()]), 1)
        store.close()

    def test_save_after_close_raises(self):
        store = JsonlVersionStore(self.path)
        store.close()
        with self.assertRaises(StorageError):
            store.save(_version("late"))

    def test_detector_restores_history_on_registration(self):
        """A new detector sharing the file picks up earlier versions."""
        first = ContentChangeDetector(store=JsonlVersionStore(self.path), log=lambda message: None)
        first.register_scraper("s1", "Scraper One")
        first.track_version("https://example.com/page", "one", "one", "s1")
        first.track_version("https://example.com/page", "two", "two", "s1")
        first.close()

        second = ContentChangeDetector(store=JsonlVersionStore(self.path), log=lambda message: None)
        second.register_scraper("s1", "Scraper One")
        latest = second.get_latest_version("https://example.com/page", "s1")
        second.close()
        self.assertEqual(latest.content, "two")


if __name__ == "__main__":
    unittest.main()
