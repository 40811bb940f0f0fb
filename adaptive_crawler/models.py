from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional


class ChangeType(IntEnum):
    """Magnitude of a content change between two visits, ordered by size."""

    NONE = 0
    MINOR = 1
    MODERATE = 2
    MAJOR = 3


class ChangeImportance(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class PageMetadata:
    url: str
    content_length: int = 0
    links_count: int = 0
    last_visited: datetime = field(default_factory=datetime.now)
    importance_score: float = 0.0
    keywords: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["last_visited"] = self.last_visited.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PageMetadata":
        last_visited = data.get("last_visited")
        if isinstance(last_visited, str):
            last_visited = datetime.fromisoformat(last_visited)
        return cls(
            url=data["url"],
            content_length=int(data.get("content_length", 0)),
            links_count=int(data.get("links_count", 0)),
            last_visited=last_visited or datetime.now(),
            importance_score=float(data.get("importance_score", 0.0)),
            keywords=list(data.get("keywords") or []),
        )


@dataclass
class SiteProfile:
    """Adaptive per-domain state driving admission delays.

    ``last_request_at`` is on the ``time.monotonic()`` clock, so it is
    meaningful only within the process that produced it; imported profiles
    are rebased to "long ago"."""

    domain: str
    requests_made: int = 0
    last_request_at: float = 0.0
    average_response_time_ms: float = 0.0
    current_delay_ms: float = 1000.0
    error_count: int = 0
    success_count: int = 0
    is_sensitive: bool = False

    @property
    def error_rate(self) -> float:
        if self.requests_made <= 0:
            return 0.0
        return self.error_count / self.requests_made

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("last_request_at")
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SiteProfile":
        return cls(
            domain=data["domain"],
            requests_made=int(data.get("requests_made", 0)),
            average_response_time_ms=float(data.get("average_response_time_ms", 0.0)),
            current_delay_ms=float(data.get("current_delay_ms", 1000.0)),
            error_count=int(data.get("error_count", 0)),
            success_count=int(data.get("success_count", 0)),
            is_sensitive=bool(data.get("is_sensitive", False)),
        )


@dataclass
class PageVersion:
    url: str
    content: str
    text_content: str
    content_hash: str
    version_date: datetime = field(default_factory=datetime.now)
    change_from_previous: ChangeType = ChangeType.NONE
    changed_sections: Dict[str, str] = field(default_factory=dict)
    scraper_id: str = "default"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "content": self.content,
            "text_content": self.text_content,
            "content_hash": self.content_hash,
            "version_date": self.version_date.isoformat(),
            "change_from_previous": self.change_from_previous.name,
            "changed_sections": dict(self.changed_sections),
            "scraper_id": self.scraper_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PageVersion":
        change = data.get("change_from_previous", ChangeType.NONE)
        if isinstance(change, str):
            change = ChangeType[change.upper()]
        version_date = data.get("version_date")
        if isinstance(version_date, str):
            version_date = datetime.fromisoformat(version_date)
        return cls(
            url=data["url"],
            content=data.get("content", ""),
            text_content=data.get("text_content", ""),
            content_hash=data["content_hash"],
            version_date=version_date or datetime.now(),
            change_from_previous=ChangeType(change),
            changed_sections=dict(data.get("changed_sections") or {}),
            scraper_id=data.get("scraper_id", "default"),
        )


@dataclass
class ScraperContentSettings:
    scraper_id: str
    scraper_name: str
    max_versions_to_keep: int = 5
    track_changes_history: bool = True
    notify_on_changes: bool = False
    notification_email: Optional[str] = None


@dataclass(frozen=True)
class ChangeNotification:
    url: str
    scraper_id: str
    scraper_name: str
    change_type: ChangeType
    detected_at: datetime
    changed_sections: Dict[str, str]
    summary: str


@dataclass(frozen=True)
class SignificantChangesResult:
    url: Optional[str]
    hash_changed: bool
    change_type: ChangeType
    changed_sections: Dict[str, str] = field(default_factory=dict)
    change_percentage: float = 0.0
    importance: ChangeImportance = ChangeImportance.LOW
    summary: str = ""

    @property
    def has_significant_changes(self) -> bool:
        return self.hash_changed and self.change_type >= ChangeType.MODERATE

    @property
    def has_critical_changes(self) -> bool:
        return self.importance is ChangeImportance.HIGH


@dataclass(frozen=True)
class ScoredUrl:
    """A URL with its priority score.

    ``failed`` separates "scoring raised" from a legitimately low score;
    failed entries always carry a score of 0.0."""

    url: str
    score: float
    failed: bool = False
    reason: Optional[str] = None


@dataclass(frozen=True)
class FetchResult:
    url: str
    success: bool
    status_code: Optional[int]
    latency_ms: int
    content: Optional[str] = None
    content_type: Optional[str] = None
    error_type: Optional[str] = None
    final_url: Optional[str] = None

    @property
    def domain_url(self) -> str:
        return self.final_url or self.url


@dataclass(frozen=True)
class ExtractedContent:
    text: str
    links: List[str] = field(default_factory=list)
    title: Optional[str] = None

    @property
    def links_count(self) -> int:
        return len(self.links)


@dataclass(frozen=True)
class MetricsSnapshot:
    window_secs: int
    total_requests: int
    success_count: int
    timeout_count: int
    conn_error_count: int
    http_429_count: int
    http_4xx_count: int
    http_5xx_count: int
    avg_latency_ms: float
    timestamp: float
