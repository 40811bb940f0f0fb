from __future__ import annotations

import os
from typing import TYPE_CHECKING, List, Optional

from ..change_detector import ContentChangeDetector
from ..errors import ComponentInitializationError
from ..models import ChangeNotification, ChangeType, PageVersion
from ..storage import JsonlVersionStore, NullVersionStore, VersionHistoryStore
from .base import Capability, CrawlComponent

if TYPE_CHECKING:
    from ..core import CrawlCore

VERSION_HISTORY_FILE = "version_history.jsonl"


class ChangeDetectionComponent(CrawlComponent):
    """Versions every fetched page for the configured scraper and reports changes."""

    capabilities = frozenset({Capability.CHANGE_DETECTOR})

    def __init__(self, detector: Optional[ContentChangeDetector] = None, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._detector = detector

    @property
    def detector(self) -> ContentChangeDetector:
        if self._detector is None:
            raise RuntimeError("ChangeDetectionComponent is not initialized")
        return self._detector

    async def initialize(self, core: "CrawlCore") -> None:
        await super().initialize(core)
        config = self.config
        if self._detector is None:
            self._detector = ContentChangeDetector(store=self._build_store(), log=self._log_sink())

        self._detector.register_scraper(
            config.scraper_id,
            config.scraper_name,
            max_versions_to_keep=config.max_versions_to_keep,
            track_history=config.track_content_versions,
            notify_on_change=config.notify_on_changes,
            email=config.notification_email,
        )
        self.log_info("Content change detector initialized")

    def track(self, url: str, content: str, text_content: str) -> Optional[PageVersion]:
        """Version a fetched page; log what changed when the change is significant."""
        try:
            scraper_id = self.config.scraper_id
            previous = self.detector.get_latest_version(url, scraper_id)
            version = self.detector.track_version(url, content, text_content, scraper_id)
            if version is not previous and version.change_from_previous >= ChangeType.MODERATE:
                if previous is not None:
                    changes = self.detector.detect_significant_changes(
                        previous.text_content, version.text_content, url
                    )
                    self.log_info(
                        f"Significant changes detected at {url}: "
                        f"{changes.change_percentage:.1f}% of words changed"
                    )
                    if changes.has_critical_changes and self.config.notify_on_changes:
                        self.log_warning(f"CRITICAL CHANGE ALERT for {url}: {changes.summary}")
            return version
        except Exception as exc:  # noqa: BLE001
            self.log_error(exc, f"Error tracking page version for {url}")
            return None

    def pending_notifications(self) -> List[ChangeNotification]:
        return self.detector.pending_notifications()

    async def on_run_completed(self) -> None:
        self.log_info(
            f"Change detection finished for scraper {self.config.scraper_id}, "
            f"{self.detector.queued_notifications} notifications pending"
        )

    def dispose(self) -> None:
        if self._detector is not None:
            self._detector.close()

    def _build_store(self) -> VersionHistoryStore:
        config = self.config
        if not config.output_directory or not config.track_content_versions:
            return NullVersionStore()
        path = os.path.join(config.output_directory, VERSION_HISTORY_FILE)
        try:
            return JsonlVersionStore(path)
        except OSError as exc:
            raise ComponentInitializationError(f"cannot open version history at {path}: {exc}") from exc
