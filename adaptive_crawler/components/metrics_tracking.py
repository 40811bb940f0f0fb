from __future__ import annotations

import json
import time
from typing import Any, Dict, Optional

from ..metrics import MetricsCollector
from ..models import FetchResult
from .base import Capability, CrawlComponent


class MetricsTrackingComponent(CrawlComponent):
    """Collects fetch outcomes and logs a one-line JSON summary per run."""

    capabilities = frozenset({Capability.METRICS})

    def __init__(self, collector: Optional[MetricsCollector] = None, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._collector = collector or MetricsCollector()
        self._run_started_at: Optional[float] = None
        self.last_summary: Optional[Dict[str, Any]] = None

    @property
    def collector(self) -> MetricsCollector:
        return self._collector

    def record(self, result: FetchResult) -> None:
        self._collector.record_result(result)

    async def on_run_started(self) -> None:
        self._run_started_at = time.time()

    async def on_run_completed(self) -> None:
        started = self._run_started_at or time.time()
        window = max(1, int(time.time() - started) + 1)
        snapshot = self._collector.snapshot(window)
        self.last_summary = {
            "timestamp": snapshot.timestamp,
            "duration_secs": round(time.time() - started, 3),
            "total_requests": snapshot.total_requests,
            "success_count": snapshot.success_count,
            "timeout_count": snapshot.timeout_count,
            "conn_error_count": snapshot.conn_error_count,
            "http_429_count": snapshot.http_429_count,
            "http_4xx_count": snapshot.http_4xx_count,
            "http_5xx_count": snapshot.http_5xx_count,
            "avg_latency_ms": round(snapshot.avg_latency_ms, 1),
            "requests_by_domain": self._collector.requests_by_domain(),
        }
        self.log_info(json.dumps(self.last_summary, ensure_ascii=False))
