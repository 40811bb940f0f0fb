from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

import requests
from curl_cffi import requests as curl_requests

from .backoff import BackoffStrategy
from .models import FetchResult

logger = logging.getLogger(__name__)


def error_type_for(exc: BaseException) -> str:
    """Collapse transport exceptions from either HTTP stack to a short label."""
    name = type(exc).__name__
    if isinstance(exc, requests.Timeout) or "Timeout" in name:
        return "Timeout"
    if isinstance(exc, requests.ConnectionError) or "ConnectionError" in name:
        return "ConnectionError"
    return name


class HttpFetcher:
    """Blocking page fetcher with retry and backoff.

    Uses plain ``requests`` by default. When ``impersonate`` names a browser
    fingerprint (e.g. ``"chrome120"``) requests go through ``curl_cffi``
    instead, for sites that reject non-browser TLS handshakes.

    Any 2xx status is a success; other statuses still return the body so the
    caller can inspect it. Exceptions never escape :meth:`fetch`.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = "Mozilla/5.0 AdaptiveCrawler/1.0",
        impersonate: Optional[str] = None,
        max_retries: int = 3,
        backoff: Optional[BackoffStrategy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._timeout = timeout
        self._headers: Dict[str, str] = {"User-Agent": user_agent}
        self._impersonate = impersonate
        self._max_retries = max(1, max_retries)
        self._backoff = backoff or BackoffStrategy()
        self._sleep = sleep

    def fetch(self, url: str) -> FetchResult:
        attempt = 0
        while True:
            attempt += 1
            result = self._attempt(url)
            if result.success or attempt >= self._max_retries:
                return result
            if not self._backoff.is_retryable(result.status_code, result.error_type):
                return result
            sleep_s = self._backoff.get_sleep(attempt, result.error_type)
            logger.debug("Retrying %s after %s (attempt %d, sleeping %.2fs)", url, result.error_type, attempt, sleep_s)
            self._sleep(sleep_s)

    def _attempt(self, url: str) -> FetchResult:
        start_ms = self._now_ms()
        try:
            response = self._request(url)
        except Exception as exc:  # noqa: BLE001
            return FetchResult(
                url=url,
                success=False,
                status_code=None,
                latency_ms=self._now_ms() - start_ms,
                error_type=error_type_for(exc),
            )

        status_code = getattr(response, "status_code", None)
        success = bool(status_code is not None and 200 <= int(status_code) < 300)
        headers = getattr(response, "headers", None) or {}
        return FetchResult(
            url=url,
            success=success,
            status_code=status_code,
            latency_ms=self._now_ms() - start_ms,
            content=getattr(response, "text", None),
            content_type=headers.get("Content-Type"),
            error_type=None if success else f"HTTP_{status_code}",
            final_url=str(getattr(response, "url", "") or url),
        )

    def _request(self, url: str) -> Any:
        if self._impersonate:
            # curl_cffi sessions are not shared across threads
            session = curl_requests.Session()
            try:
                return session.request(
                    method="GET",
                    url=url,
                    headers=self._headers,
                    impersonate=self._impersonate,
                    timeout=self._timeout,
                    allow_redirects=True,
                )
            finally:
                session.close()
        return requests.get(url, headers=self._headers, timeout=self._timeout, allow_redirects=True)

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)
