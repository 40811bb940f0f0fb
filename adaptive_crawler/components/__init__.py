from .adaptive_crawling import AdaptiveCrawlingComponent
from .base import BrowserHandler, Capability, ContentExtractor, CrawlComponent, UrlProcessor
from .change_detection import ChangeDetectionComponent
from .content_extractor import HtmlContentExtractor
from .metrics_tracking import MetricsTrackingComponent
from .rate_limiting import RateLimitingComponent
from .url_processor import HttpUrlProcessor

__all__ = [
    "AdaptiveCrawlingComponent",
    "BrowserHandler",
    "Capability",
    "ChangeDetectionComponent",
    "ContentExtractor",
    "CrawlComponent",
    "HtmlContentExtractor",
    "HttpUrlProcessor",
    "MetricsTrackingComponent",
    "RateLimitingComponent",
    "UrlProcessor",
]
