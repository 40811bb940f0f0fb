from __future__ import annotations

import os
from typing import TYPE_CHECKING, Optional

from ..rate_limiter import AdaptiveRateLimiter
from ..storage import read_json_snapshot, write_json_snapshot
from .base import Capability, CrawlComponent

if TYPE_CHECKING:
    from ..core import CrawlCore

PROFILES_FILE = "site_profiles.json"


class RateLimitingComponent(CrawlComponent):
    """Gates every fetch of the run through an :class:`AdaptiveRateLimiter`."""

    capabilities = frozenset({Capability.RATE_LIMITER})

    def __init__(self, limiter: Optional[AdaptiveRateLimiter] = None, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._limiter = limiter

    @property
    def limiter(self) -> AdaptiveRateLimiter:
        if self._limiter is None:
            raise RuntimeError("RateLimitingComponent is not initialized")
        return self._limiter

    async def initialize(self, core: "CrawlCore") -> None:
        await super().initialize(core)
        if self._limiter is None:
            self._limiter = AdaptiveRateLimiter(
                requests_per_minute=self.config.requests_per_minute,
                log=self._log_sink(),
            )

        path = self._profiles_path()
        if path:
            try:
                profiles = read_json_snapshot(path)
            except Exception as exc:  # noqa: BLE001
                self.log_error(exc, "Error loading site profiles")
            else:
                if profiles:
                    self._limiter.load_site_profiles(profiles)

        for domain in self.config.sensitive_domains:
            self._limiter.mark_sensitive(domain)
        self.log_info(
            f"Rate limiting component initialized with default rate of "
            f"{self.config.requests_per_minute} requests per minute"
        )

    async def wait_for_permission(self, url: str) -> bool:
        """Suspend until ``url`` may be fetched; False if the run was cancelled."""
        cancellation = self._core.cancellation if self._core else None
        return await self.limiter.permit(url, cancellation)

    def report_response(self, url: str, status_code: Optional[int], response_time_ms: Optional[float]) -> None:
        self.limiter.report_outcome(url, status_code, response_time_ms)

    def set_global_rate(self, requests_per_minute: float) -> None:
        self.limiter.set_global_rate(requests_per_minute)

    async def on_run_completed(self) -> None:
        profiles = self.limiter.export_site_profiles()
        self.log_info("Rate limiting statistics:")
        for domain, profile in sorted(profiles.items()):
            self.log_info(
                f"  {domain}: delay={profile['current_delay_ms']:.0f}ms "
                f"requests={profile['requests_made']} errors={profile['error_count']}"
            )
        self._save_profiles()

    def on_run_stopped(self) -> None:
        self._save_profiles()

    def _profiles_path(self) -> Optional[str]:
        directory = self.config.output_directory
        return os.path.join(directory, PROFILES_FILE) if directory else None

    def _save_profiles(self) -> None:
        path = self._profiles_path()
        if not path or self._limiter is None:
            return
        try:
            write_json_snapshot(path, self._limiter.export_site_profiles())
        except Exception as exc:  # noqa: BLE001
            self.log_error(exc, "Error saving site profiles")
