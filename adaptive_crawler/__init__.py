"""Adaptive crawl-control package.

Decides which URLs to fetch next, how fast each domain may be hit, and how
much a page changed since the last visit, and drives pluggable components
through a crawl run.

Key modules:
    core            -- CrawlCore orchestrator, CoreState lifecycle
    prioritizer     -- UrlPrioritizer URL scoring and crawl queue
    metadata_store  -- MetadataStore per-URL metadata and domain visit counts
    rate_limiter    -- AdaptiveRateLimiter per-domain admission control
    change_detector -- ContentChangeDetector versioning and change classification
    cancellation    -- CancellationToken cooperative run cancellation
    components      -- CrawlComponent base and the standard components
    factory         -- CrawlerFactory wiring a core from a CrawlerConfig
    fetcher         -- HttpFetcher blocking HTTP fetch with retries
    backoff         -- BackoffStrategy for exponential retry delays
    metrics         -- MetricsCollector for fetch statistics
    storage         -- version history stores and JSON snapshots
    models          -- dataclasses shared across modules
    config          -- CrawlerConfig
    log             -- logging setup
"""
from .cancellation import CancellationToken
from .change_detector import ContentChangeDetector
from .config import CrawlerConfig
from .core import CoreState, CrawlCore
from .factory import CrawlerFactory
from .models import ChangeImportance, ChangeType
from .prioritizer import UrlPrioritizer
from .rate_limiter import AdaptiveRateLimiter

__all__ = [
    "AdaptiveRateLimiter",
    "CancellationToken",
    "ChangeImportance",
    "ChangeType",
    "ContentChangeDetector",
    "CoreState",
    "CrawlCore",
    "CrawlerConfig",
    "CrawlerFactory",
    "UrlPrioritizer",
]
