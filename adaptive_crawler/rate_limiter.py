from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import replace
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union

from .cancellation import CancellationToken
from .models import SiteProfile
from .prioritizer import url_domain

logger = logging.getLogger(__name__)

MIN_DELAY_MS = 500.0
MAX_DELAY_MS = 10_000.0
DEFAULT_DELAY_MS = 1000.0
SENSITIVE_FLOOR_MS = 2000.0
FIRST_REQUEST_BACKDATE_SECS = 10.0
SLOW_RESPONSE_MS = 2000.0
SUCCESS_STREAK_FOR_DECAY = 5


class AdaptiveRateLimiter:
    """Per-domain adaptive admission control for outbound requests.

    Each domain gets a :class:`SiteProfile` whose delay grows on 429s, server
    and client errors and slowly decays while the site stays healthy.
    Calling :meth:`permit` suspends the caller until the domain's delay has
    elapsed since its previous admitted request.

    Admission for one domain is serialised by a per-domain lock, so two
    concurrent callers never both read a stale ``last_request_at``; different
    domains are admitted independently.
    """

    def __init__(
        self,
        requests_per_minute: float = 60.0,
        min_delay_ms: float = MIN_DELAY_MS,
        max_delay_ms: float = MAX_DELAY_MS,
        default_delay_ms: float = DEFAULT_DELAY_MS,
        log: Optional[Callable[[str], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._min_delay = min_delay_ms
        self._max_delay = max_delay_ms
        self._default_delay = default_delay_ms
        self._requests_per_minute = requests_per_minute
        self._log = log or logger.info
        self._clock = clock

        self._lock = threading.Lock()
        self._profiles: Dict[str, SiteProfile] = {}
        self._admission_locks: Dict[str, asyncio.Lock] = {}
        self._locks_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def requests_per_minute(self) -> float:
        return self._requests_per_minute

    @property
    def min_delay_ms(self) -> float:
        return self._min_delay

    @property
    def max_delay_ms(self) -> float:
        return self._max_delay

    async def permit(self, url: str, cancellation: Optional[CancellationToken] = None) -> bool:
        """Wait until a request to ``url``'s domain is allowed.

        Returns False when the wait was cancelled or the URL is unusable.
        """
        try:
            domain = url_domain(url)
        except ValueError as exc:
            self._log(f"Error in rate limiter: {exc}")
            return False

        try:
            async with self._admission_lock(domain):
                with self._lock:
                    profile, created = self._get_or_create(domain)
                    elapsed_ms = (self._clock() - profile.last_request_at) * 1000.0
                    wait_ms = profile.current_delay_ms - elapsed_ms
                self._log_created(domain, created)

                if wait_ms > 0:
                    self._log(f"Rate limiting: Delaying request to {domain} for {wait_ms:.0f}ms")
                    if cancellation is not None:
                        if not await cancellation.sleep(wait_ms / 1000.0):
                            self._log(f"Rate limiting wait was cancelled for {url}")
                            return False
                    else:
                        await asyncio.sleep(wait_ms / 1000.0)
                elif cancellation is not None and cancellation.cancelled:
                    return False

                with self._lock:
                    profile.last_request_at = self._clock()
                    profile.requests_made += 1
                return True
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            self._log(f"Error in rate limiter: {exc}")
            return False

    def update_site_profile(self, url: str, response_time_ms: float, was_successful: bool) -> None:
        """Record one outcome with its latency and recompute the delay from the totals."""
        try:
            domain = url_domain(url)
            with self._lock:
                profile, created = self._get_or_create(domain)
                if was_successful:
                    profile.success_count += 1
                else:
                    profile.error_count += 1
                self._record_latency(profile, response_time_ms)
                notes = self._recompute(profile)
                delay = profile.current_delay_ms
            self._log_created(domain, created)
            for note in notes:
                self._log(note)
            if not was_successful:
                self._log(f"Request error recorded for {domain}")
            self._log(
                f"Updated site profile for {domain}: Delay={delay:.0f}ms, "
                f"Errors={profile.error_count}, Success={profile.success_count}"
            )
        except Exception as exc:  # noqa: BLE001
            self._log(f"Error updating site profile: {exc}")

    def report_success(self, url: str, response_time_ms: Optional[float] = None) -> None:
        """Count a success; a measured response time also recomputes the delay."""
        try:
            domain = url_domain(url)
            notes: List[str] = []
            with self._lock:
                profile, created = self._get_or_create(domain)
                profile.success_count += 1
                if profile.success_count >= SUCCESS_STREAK_FOR_DECAY and profile.error_count == 0:
                    profile.current_delay_ms = self._bounded(profile, profile.current_delay_ms * 0.95)
                if response_time_ms is not None:
                    self._record_latency(profile, response_time_ms)
                    notes = self._recompute(profile)
            self._log_created(domain, created)
            for note in notes:
                self._log(note)
        except Exception as exc:  # noqa: BLE001
            self._log(f"Error reporting success: {exc}")

    def report_rate_limited(self, url: str) -> None:
        self._report_error(url, 2.0, "Rate limited")

    def report_server_error(self, url: str) -> None:
        self._report_error(url, 1.5, "Server error")

    def report_client_error(self, url: str) -> None:
        self._report_error(url, 1.1, "Client error")

    def report_outcome(self, url: str, status_code: Optional[int], response_time_ms: Optional[float] = None) -> None:
        """Dispatch an HTTP outcome to the matching report method.

        ``status_code`` None means the request never got a response.
        """
        if status_code is not None and 200 <= status_code < 300:
            self.report_success(url, response_time_ms)
        elif status_code in (429, 503):
            self.report_rate_limited(url)
        elif status_code is None or status_code >= 500:
            self.report_server_error(url)
        elif status_code >= 400:
            self.report_client_error(url)
        else:
            self.report_success(url, response_time_ms)

    def recompute_delay(self, profile: SiteProfile) -> None:
        """Derive a fresh delay from the profile's error rate and latency.

        Takes the limiter lock; do not call it while already holding it.
        """
        with self._lock:
            notes = self._recompute(profile)
        for note in notes:
            self._log(note)

    def _recompute(self, profile: SiteProfile) -> List[str]:
        notes = []
        delay = self._default_delay
        if profile.requests_made > 0:
            error_rate = profile.error_rate
            if error_rate > 0.2:
                delay = profile.current_delay_ms * 1.5
                notes.append(f"Increased delay for {profile.domain} due to high error rate ({error_rate:.2%})")
            elif error_rate > 0.05:
                delay = profile.current_delay_ms * 1.2
            elif profile.success_count > 10 and error_rate < 0.01:
                delay = profile.current_delay_ms * 0.95

        if profile.average_response_time_ms > SLOW_RESPONSE_MS:
            delay = max(delay, profile.average_response_time_ms * 0.5)
            notes.append(
                f"Adjusted delay for {profile.domain} due to slow response times "
                f"({profile.average_response_time_ms:.0f}ms)"
            )

        profile.current_delay_ms = self._bounded(profile, delay)
        return notes

    def mark_sensitive(self, domain: str, sensitive: bool = True) -> None:
        """Flag a domain as sensitive, holding its delay at 2s or more."""
        domain = domain.lower()
        with self._lock:
            profile, created = self._get_or_create(domain)
            profile.is_sensitive = sensitive
            if sensitive:
                profile.current_delay_ms = self._bounded(profile, profile.current_delay_ms)
            delay = profile.current_delay_ms
        self._log_created(domain, created)
        if sensitive:
            self._log(f"Marked {domain} as sensitive, increased minimum delay to {delay:.0f}ms")

    def set_global_rate(self, requests_per_minute: float) -> None:
        """Reset every known domain's delay to match a requests-per-minute rate."""
        if requests_per_minute <= 0:
            self._log("Invalid requests per minute rate - must be > 0")
            return

        base_delay = 60000.0 / requests_per_minute
        with self._lock:
            self._requests_per_minute = requests_per_minute
            for profile in self._profiles.values():
                profile.current_delay_ms = self._bounded(profile, base_delay)
        self._log(f"Set rate limit to {requests_per_minute} requests per minute")

    def get_profile(self, domain: str) -> Optional[SiteProfile]:
        with self._lock:
            profile = self._profiles.get(domain.lower())
            return replace(profile) if profile else None

    def load_site_profiles(self, profiles: Mapping[str, Union[SiteProfile, dict]]) -> None:
        """Import persisted profiles; imported domains may be requested immediately."""
        backdated = self._clock() - FIRST_REQUEST_BACKDATE_SECS
        with self._lock:
            for domain, raw in profiles.items():
                profile = raw if isinstance(raw, SiteProfile) else SiteProfile.from_dict(raw)
                profile = replace(profile, domain=domain.lower(), last_request_at=backdated)
                profile.current_delay_ms = self._bounded(profile, profile.current_delay_ms)
                self._profiles[profile.domain] = profile
        self._log(f"Loaded rate limiting profiles for {len(profiles)} domains")

    def export_site_profiles(self) -> Dict[str, dict]:
        with self._lock:
            return {domain: profile.to_dict() for domain, profile in self._profiles.items()}

    def _report_error(self, url: str, factor: float, label: str) -> None:
        try:
            domain = url_domain(url)
            with self._lock:
                profile, created = self._get_or_create(domain)
                profile.error_count += 1
                profile.current_delay_ms = self._bounded(profile, profile.current_delay_ms * factor)
                delay = profile.current_delay_ms
            self._log_created(domain, created)
            self._log(f"{label} on {domain} - increased delay to {delay:.0f}ms")
        except Exception as exc:  # noqa: BLE001
            self._log(f"Error reporting {label.lower()}: {exc}")

    @staticmethod
    def _record_latency(profile: SiteProfile, response_time_ms: float) -> None:
        if profile.average_response_time_ms == 0:
            profile.average_response_time_ms = float(response_time_ms)
        else:
            profile.average_response_time_ms = profile.average_response_time_ms * 0.7 + response_time_ms * 0.3

    def _bounded(self, profile: SiteProfile, delay_ms: float) -> float:
        if profile.is_sensitive:
            delay_ms = max(delay_ms, SENSITIVE_FLOOR_MS)
        return min(max(delay_ms, self._min_delay), self._max_delay)

    def _get_or_create(self, domain: str) -> Tuple[SiteProfile, bool]:
        """Caller holds the lock; the flag says whether the profile is new."""
        profile = self._profiles.get(domain)
        if profile is not None:
            return profile, False
        profile = SiteProfile(
            domain=domain,
            last_request_at=self._clock() - FIRST_REQUEST_BACKDATE_SECS,
            current_delay_ms=self._default_delay,
        )
        self._profiles[domain] = profile
        return profile, True

    def _log_created(self, domain: str, created: bool) -> None:
        if created:
            self._log(f"Creating new rate limiting profile for {domain}")

    def _admission_lock(self, domain: str) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        with self._lock:
            # asyncio locks bind to the loop that first waits on them
            if self._locks_loop is not loop:
                self._admission_locks.clear()
                self._locks_loop = loop
            lock = self._admission_locks.get(domain)
            if lock is None:
                lock = asyncio.Lock()
                self._admission_locks[domain] = lock
            return lock
