from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlsplit


@dataclass
class CrawlerConfig:
    """Settings for one crawl run and the components that take part in it."""

    start_url: Optional[str] = None
    scraper_id: str = "default"
    scraper_name: str = "Default Scraper"

    # Scope
    allowed_domains: List[str] = field(default_factory=list)
    exclude_url_patterns: List[str] = field(default_factory=list)
    max_pages: int = 100
    max_depth: int = 3

    # Fetching
    max_concurrent_requests: int = 5
    batch_size: int = 10
    request_timeout_seconds: float = 30.0
    user_agent: str = "Mozilla/5.0 AdaptiveCrawler/1.0"
    impersonate: Optional[str] = None
    max_retries: int = 3

    # Rate limiting
    enable_rate_limiting: bool = True
    requests_per_minute: float = 60.0
    sensitive_domains: List[str] = field(default_factory=list)

    # Change detection
    enable_change_detection: bool = True
    track_content_versions: bool = True
    max_versions_to_keep: int = 5
    notify_on_changes: bool = False
    notification_email: Optional[str] = None

    enable_adaptive_crawling: bool = True
    enable_metrics: bool = True
    output_directory: Optional[str] = "output"

    def validate(self) -> List[str]:
        """Return a list of configuration problems; empty when usable."""
        problems = []
        if not self.start_url:
            problems.append("start_url is required")
        else:
            parts = urlsplit(self.start_url)
            if parts.scheme not in ("http", "https") or not parts.hostname:
                problems.append(f"start_url must be an absolute http(s) URL: {self.start_url!r}")
        if self.max_pages <= 0:
            problems.append("max_pages must be positive")
        if self.max_depth < 0:
            problems.append("max_depth must not be negative")
        if self.max_concurrent_requests <= 0:
            problems.append("max_concurrent_requests must be positive")
        if self.batch_size <= 0:
            problems.append("batch_size must be positive")
        if self.requests_per_minute <= 0:
            problems.append("requests_per_minute must be positive")
        if self.track_content_versions and self.max_versions_to_keep <= 0:
            problems.append("max_versions_to_keep must be positive when tracking versions")
        if self.notify_on_changes and not self.notification_email:
            problems.append("notification_email is required when notify_on_changes is set")
        return problems

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CrawlerConfig":
        """Build a config from a plain mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
