"""Tests for CrawlerConfig validation."""

import unittest

from adaptive_crawler.config import CrawlerConfig


class TestCrawlerConfig(unittest.TestCase):
    def test_valid_config_has_no_problems(self):
        self.assertEqual(CrawlerConfig(start_url="https://example.com").validate(), [])

    def test_start_url_required(self):
        problems = CrawlerConfig().validate()
        self.assertIn("start_url is required", problems)

    def test_relative_start_url_rejected(self):
        problems = CrawlerConfig(start_url="/about").validate()
        self.assertEqual(len(problems), 1)
        self.assertIn("absolute", problems[0])

    def test_collects_every_problem(self):
        config = CrawlerConfig(
            start_url="https://example.com",
            max_pages=0,
            max_concurrent_requests=0,
            requests_per_minute=-1,
            notify_on_changes=True,
        )
        self.assertEqual(len(config.validate()), 4)

    def test_from_dict_ignores_unknown_keys(self):
        config = CrawlerConfig.from_dict({"start_url": "https://example.com", "max_pages": 5, "colour": "blue"})
        self.assertEqual(config.max_pages, 5)
        self.assertEqual(config.to_dict()["start_url"], "https://example.com")


if __name__ == "__main__":
    unittest.main()
