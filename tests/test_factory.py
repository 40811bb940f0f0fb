"""Tests for the CrawlerFactory class."""

import unittest

from adaptive_crawler.components import (
    AdaptiveCrawlingComponent,
    ChangeDetectionComponent,
    HtmlContentExtractor,
    HttpUrlProcessor,
    MetricsTrackingComponent,
    RateLimitingComponent,
)
from adaptive_crawler.components.base import BrowserHandler, Capability
from adaptive_crawler.config import CrawlerConfig
from adaptive_crawler.core import CoreState
from adaptive_crawler.factory import CrawlerFactory
from adaptive_crawler.models import FetchResult


class StaticFetcher:
    def __init__(self):
        self.requested = []

    def fetch(self, url):
        self.requested.append(url)
        return FetchResult(url=url, success=True, status_code=200, latency_ms=1,
                           content="<p>Hello</p>", content_type="text/html")


class NoBrowser(BrowserHandler):
    def needs_browser(self, url):
        return False

    async def navigate(self, url):
        raise AssertionError("not expected")


class TestCrawlerFactory(unittest.TestCase):
    """Verify that the factory wires the components a config enables."""

    def test_default_config_registers_every_component(self):
        """All optional components are on by default."""
        core = CrawlerFactory(CrawlerConfig(start_url="https://example.com")).create_core()
        expected = {
            Capability.CONTENT_EXTRACTOR: HtmlContentExtractor,
            Capability.URL_PRIORITIZER: AdaptiveCrawlingComponent,
            Capability.RATE_LIMITER: RateLimitingComponent,
            Capability.CHANGE_DETECTOR: ChangeDetectionComponent,
            Capability.METRICS: MetricsTrackingComponent,
            Capability.URL_PROCESSOR: HttpUrlProcessor,
        }
        for capability, cls in expected.items():
            self.assertIsInstance(core.get_component(capability), cls)
        self.assertIsNone(core.get_component(Capability.BROWSER_HANDLER))

    def test_disabled_components_are_left_out(self):
        config = CrawlerConfig(
            start_url="https://example.com",
            enable_rate_limiting=False,
            enable_change_detection=False,
            enable_adaptive_crawling=False,
            enable_metrics=False,
        )
        core = CrawlerFactory(config).create_core()
        self.assertEqual(len(core.components), 2)
        self.assertTrue(core.has_component(Capability.URL_PROCESSOR))

    def test_browser_handler_is_registered(self):
        browser = NoBrowser()
        core = CrawlerFactory(CrawlerConfig(start_url="https://example.com"), browser_handler=browser).create_core()
        self.assertIs(core.get_component(Capability.BROWSER_HANDLER), browser)

    def test_invalid_config_raises(self):
        with self.assertRaises(ValueError) as ctx:
            CrawlerFactory(CrawlerConfig()).create_core()
        self.assertIn("start_url", str(ctx.exception))


class TestFactoryCrawl(unittest.IsolatedAsyncioTestCase):
    async def test_supplied_fetcher_is_used(self):
        fetcher = StaticFetcher()
        config = CrawlerConfig(start_url="https://example.com/", output_directory=None)
        core = CrawlerFactory(config, fetcher=fetcher, log=lambda message: None).create_core()
        state = await core.run()
        core.dispose()
        self.assertEqual(state, CoreState.COMPLETED)
        self.assertEqual(fetcher.requested, ["https://example.com"])


if __name__ == "__main__":
    unittest.main()
