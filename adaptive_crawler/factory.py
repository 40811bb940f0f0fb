from __future__ import annotations

from typing import Callable, Optional

from .components import (
    AdaptiveCrawlingComponent,
    BrowserHandler,
    ChangeDetectionComponent,
    HtmlContentExtractor,
    HttpUrlProcessor,
    MetricsTrackingComponent,
    RateLimitingComponent,
)
from .config import CrawlerConfig
from .core import CrawlCore
from .fetcher import HttpFetcher


class CrawlerFactory:
    """Builds a :class:`CrawlCore` wired with the components a config enables.

    The HTTP fetcher and an optional browser handler can be supplied so
    callers (and tests) control how pages are actually retrieved.
    """

    def __init__(
        self,
        config: CrawlerConfig,
        fetcher: Optional[HttpFetcher] = None,
        browser_handler: Optional[BrowserHandler] = None,
        log: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._config = config
        self._fetcher = fetcher
        self._browser_handler = browser_handler
        self._log = log

    def create_core(self) -> CrawlCore:
        problems = self._config.validate()
        if problems:
            raise ValueError("Invalid crawler config: " + "; ".join(problems))

        config = self._config
        core = CrawlCore(config, log=self._log)
        core.add_component(HtmlContentExtractor())
        if config.enable_adaptive_crawling:
            core.add_component(AdaptiveCrawlingComponent())
        if config.enable_rate_limiting:
            core.add_component(RateLimitingComponent())
        if config.enable_change_detection:
            core.add_component(ChangeDetectionComponent())
        if config.enable_metrics:
            core.add_component(MetricsTrackingComponent())
        if self._browser_handler is not None:
            core.add_component(self._browser_handler)
        core.add_component(HttpUrlProcessor(fetcher=self._fetcher))
        return core
