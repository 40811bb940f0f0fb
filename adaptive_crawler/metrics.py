from __future__ import annotations

import time
from collections import Counter, deque
from dataclasses import asdict
from threading import Lock
from typing import Deque, Dict, List
from urllib.parse import urlsplit

from .models import FetchResult, MetricsSnapshot


class MetricsCollector:
    """Thread-safe collector for crawl fetch outcomes.

    Records FetchResult events and produces aggregated MetricsSnapshot
    objects over configurable sliding time windows."""

    def __init__(self, max_events: int = 10000) -> None:
        self._lock = Lock()
        self._events: Deque[tuple[float, FetchResult]] = deque(maxlen=max_events)

    def record_result(self, result: FetchResult) -> None:
        """Record a fetch result with the current timestamp."""
        with self._lock:
            self._events.append((time.time(), result))

    def snapshot(self, window_secs: int) -> MetricsSnapshot:
        """Return aggregated metrics for events within the last window_secs seconds."""
        now = time.time()
        cutoff = now - window_secs
        with self._lock:
            events: List[FetchResult] = [e for ts, e in self._events if ts >= cutoff]
        total = len(events)
        statuses = [e.status_code for e in events if e.status_code is not None]

        return MetricsSnapshot(
            window_secs=window_secs,
            total_requests=total,
            success_count=sum(1 for e in events if e.success),
            timeout_count=sum(1 for e in events if e.error_type == "Timeout"),
            conn_error_count=sum(1 for e in events if e.error_type == "ConnectionError"),
            http_429_count=sum(1 for s in statuses if s == 429),
            http_4xx_count=sum(1 for s in statuses if 400 <= s < 500),
            http_5xx_count=sum(1 for s in statuses if s >= 500),
            avg_latency_ms=(sum(e.latency_ms for e in events) / total) if total else 0.0,
            timestamp=now,
        )

    def requests_by_domain(self) -> Dict[str, int]:
        with self._lock:
            urls = [e.url for _, e in self._events]
        return dict(Counter(urlsplit(url).hostname or "unknown" for url in urls))

    def export_json(self) -> List[Dict]:
        """Export all recorded events as a list of dictionaries, without page bodies."""
        with self._lock:
            events = list(self._events)
        exported = []
        for ts, e in events:
            record = asdict(e)
            record.pop("content", None)
            exported.append({"timestamp": ts, **record})
        return exported
