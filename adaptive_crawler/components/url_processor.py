from __future__ import annotations

import asyncio
from collections import deque
from typing import TYPE_CHECKING, Deque, Dict, List, Optional, Set
from urllib.parse import urlsplit

from ..backoff import BackoffStrategy
from ..errors import ComponentInitializationError
from ..fetcher import HttpFetcher
from ..models import ExtractedContent, FetchResult
from .adaptive_crawling import AdaptiveCrawlingComponent
from .base import BrowserHandler, Capability, ContentExtractor, UrlProcessor
from .change_detection import ChangeDetectionComponent
from .metrics_tracking import MetricsTrackingComponent
from .rate_limiting import RateLimitingComponent

if TYPE_CHECKING:
    from ..core import CrawlCore

DOCUMENT_CONTENT_TYPES = ("pdf", "msword", "excel", "powerpoint", "openxmlformat", "opendocument")


def normalize_url(url: str) -> str:
    """Drop the fragment and any trailing slash."""
    url = url.split("#", 1)[0]
    return url.rstrip("/")


def is_document_type(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    lowered = content_type.lower()
    return any(marker in lowered for marker in DOCUMENT_CONTENT_TYPES)


class HttpUrlProcessor(UrlProcessor):
    """Breadth-limited crawl loop from a start URL.

    Each round takes the best-scoring batch from the prioritizer (or the
    oldest queued URLs when no prioritizer is registered), asks the rate
    limiter for admission per URL, fetches concurrently up to
    ``max_concurrent_requests``, and feeds every page into change detection
    and the prioritizer before queueing its in-scope links. The loop ends
    when the queue is empty, ``max_pages`` pages were claimed, or the run is
    cancelled.

    Failed fetches with a retryable status are retried up to
    ``max_retries`` attempts in total. Every attempt waits for rate-limiter
    admission and reports its own outcome.
    """

    def __init__(
        self,
        fetcher: Optional[HttpFetcher] = None,
        backoff: Optional[BackoffStrategy] = None,
        *args,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._fetcher = fetcher
        self._backoff = backoff or BackoffStrategy()
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._visited: Set[str] = set()
        self._depths: Dict[str, int] = {}
        self._fifo: Deque[str] = deque()
        self._claimed = 0
        self._pages_processed = 0
        self._start_host: Optional[str] = None

    @property
    def visited(self) -> Set[str]:
        return set(self._visited)

    @property
    def pages_processed(self) -> int:
        return self._pages_processed

    @property
    def _max_attempts(self) -> int:
        return max(1, self.config.max_retries)

    async def initialize(self, core: "CrawlCore") -> None:
        await super().initialize(core)
        config = self.config
        if config.max_concurrent_requests <= 0 or config.batch_size <= 0:
            raise ComponentInitializationError(
                "max_concurrent_requests and batch_size must be positive to process URLs"
            )
        if self._fetcher is None:
            self._fetcher = HttpFetcher(
                timeout=config.request_timeout_seconds,
                user_agent=config.user_agent,
                impersonate=config.impersonate,
                # one network attempt per rate-limiter admission
                max_retries=1,
            )
        self.log_info("HttpUrlProcessor initialized")

    async def on_run_started(self) -> None:
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent_requests)
        self._visited.clear()
        self._depths.clear()
        self._fifo.clear()
        self._claimed = 0
        self._pages_processed = 0
        self.log_info("HttpUrlProcessor ready to process URLs")

    async def process_url(self, url: str) -> None:
        if not url:
            return
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.config.max_concurrent_requests)

        start = normalize_url(url)
        self._start_host = urlsplit(start).hostname
        self._depths[start] = 0
        prioritizer = self._prioritizer()
        if prioritizer:
            prioritizer.initialize_queue([start])
        else:
            self._fifo.append(start)

        while not self._cancelled():
            batch = self._next_batch()
            if not batch:
                break
            await asyncio.gather(*(self._visit(candidate) for candidate in batch))

        self.log_info(f"Processed {self._pages_processed} pages ({len(self._visited)} URLs visited)")

    def should_crawl(self, url: str) -> bool:
        """True for http(s) URLs inside the allowed domains and not excluded."""
        try:
            parts = urlsplit(url)
        except ValueError:
            return False
        host = parts.hostname
        if parts.scheme not in ("http", "https") or not host:
            return False

        allowed = [d.lower() for d in self.config.allowed_domains]
        if allowed:
            in_scope = any(host == d or host.endswith(f".{d}") for d in allowed)
        else:
            in_scope = host == self._start_host
        lowered = url.lower()
        excluded = any(pattern.lower() in lowered for pattern in self.config.exclude_url_patterns)
        return in_scope and not excluded

    def _next_batch(self) -> List[str]:
        remaining = self.config.max_pages - self._claimed
        if remaining <= 0:
            return []
        size = min(self.config.batch_size, remaining)

        prioritizer = self._prioritizer()
        if prioritizer:
            candidates = prioritizer.next_batch(size)
        else:
            candidates = [self._fifo.popleft() for _ in range(min(size, len(self._fifo)))]

        batch = []
        for candidate in candidates:
            if candidate not in self._visited:
                self._visited.add(candidate)
                batch.append(candidate)
        self._claimed += len(batch)
        return batch

    async def _visit(self, url: str) -> None:
        async with self._semaphore:
            if self._cancelled():
                return
            try:
                await self._process(url)
            except Exception as exc:  # noqa: BLE001
                self.log_error(exc, f"Error processing URL: {url}")

    async def _process(self, url: str) -> None:
        rate_limiter = self.get_component(Capability.RATE_LIMITER)
        if not isinstance(rate_limiter, RateLimitingComponent):
            rate_limiter = None

        attempt = 0
        while True:
            attempt += 1
            if rate_limiter and not await rate_limiter.wait_for_permission(url):
                self.log_info(f"Skipping {url}: rate limiter did not grant permission")
                return

            result = await self._fetch(url)
            if rate_limiter:
                rate_limiter.report_response(url, result.status_code, result.latency_ms)
            metrics = self.get_component(Capability.METRICS)
            if isinstance(metrics, MetricsTrackingComponent):
                metrics.record(result)

            if result.success or attempt >= self._max_attempts:
                break
            if not BackoffStrategy.is_retryable(result.status_code, result.error_type):
                break
            sleep_s = self._backoff.get_sleep(attempt, result.error_type)
            self.log_info(f"Retrying {url} after {result.error_type} (attempt {attempt}, sleeping {sleep_s:.2f}s)")
            if not await self._core.cancellation.sleep(sleep_s):
                return

        if not result.success or result.content is None:
            self.log_warning(f"Fetch failed for {url}: {result.error_type}")
            return
        if is_document_type(result.content_type):
            self.log_info(f"Skipping document {url} ({result.content_type})")
            return

        extracted = self._extract(result)
        detector = self.get_component(Capability.CHANGE_DETECTOR)
        if isinstance(detector, ChangeDetectionComponent):
            detector.track(url, result.content, extracted.text)
        prioritizer = self._prioritizer()
        if prioritizer:
            prioritizer.record_visit(url, extracted.links_count, extracted.text)
        self._pages_processed += 1

        self._queue_links(url, extracted.links)

    async def _fetch(self, url: str) -> FetchResult:
        browser = self.get_component(Capability.BROWSER_HANDLER)
        if isinstance(browser, BrowserHandler) and browser.needs_browser(url):
            self.log_info(f"Processing with browser: {url}")
            return await browser.navigate(url)
        self.log_info(f"Processing with HTTP client: {url}")
        return await asyncio.to_thread(self._fetcher.fetch, url)

    def _extract(self, result: FetchResult) -> ExtractedContent:
        extractor = self.get_component(Capability.CONTENT_EXTRACTOR)
        if isinstance(extractor, ContentExtractor):
            return extractor.extract(result.content, result.domain_url)
        return ExtractedContent(text=result.content)

    def _queue_links(self, url: str, links: List[str]) -> None:
        depth = self._depths.get(url, 0)
        if depth >= self.config.max_depth:
            return

        fresh = []
        for link in links:
            candidate = normalize_url(link)
            if candidate in self._visited or candidate in self._depths or not self.should_crawl(candidate):
                continue
            self._depths[candidate] = depth + 1
            fresh.append(candidate)

        if not fresh:
            return
        prioritizer = self._prioritizer()
        if prioritizer:
            prioritizer.enqueue(fresh)
        else:
            self._fifo.extend(fresh)

    def _prioritizer(self) -> Optional[AdaptiveCrawlingComponent]:
        component = self.get_component(Capability.URL_PRIORITIZER)
        return component if isinstance(component, AdaptiveCrawlingComponent) else None

    def _cancelled(self) -> bool:
        return self._core is not None and self._core.cancellation.cancelled
