"""Tests for logger setup."""

import logging
import os
import shutil
import sys
import tempfile
import unittest

from adaptive_crawler.log import CrawlFormatter, setup_logger


class TestSetupLogger(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_handlers_attached_once(self):
        logger = setup_logger("adaptive_crawler.test_once")
        setup_logger("adaptive_crawler.test_once")
        self.assertEqual(len(logger.handlers), 1)

    def test_file_handler_writes_formatted_lines(self):
        path = os.path.join(self.tmp_dir, "crawl.log")
        logger = setup_logger("adaptive_crawler.test_file", log_file=path)
        logger.info("hello crawl")
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        with open(path, "r", encoding="utf-8") as f:
            line = f.read().strip()
        self.assertTrue(line.startswith("[ "))
        self.assertTrue(line.endswith(" : INFO : adaptive_crawler.test_file : hello crawl"))

    def test_formatter_includes_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.getLogger("x").makeRecord(
                "x", logging.ERROR, __file__, 1, "failed", None, exc_info=sys.exc_info()
            )
        self.assertIn("ValueError: boom", CrawlFormatter().format(record))


if __name__ == "__main__":
    unittest.main()
