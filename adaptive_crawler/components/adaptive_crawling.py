from __future__ import annotations

import os
from typing import TYPE_CHECKING, Iterable, List, Optional

from ..prioritizer import UrlPrioritizer
from ..storage import read_json_snapshot, write_json_snapshot
from .base import Capability, CrawlComponent

if TYPE_CHECKING:
    from ..core import CrawlCore

METADATA_FILE = "page_metadata.json"


class AdaptiveCrawlingComponent(CrawlComponent):
    """Exposes a :class:`UrlPrioritizer` to the run and persists its metadata."""

    capabilities = frozenset({Capability.URL_PRIORITIZER})

    def __init__(self, prioritizer: Optional[UrlPrioritizer] = None, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._prioritizer = prioritizer

    @property
    def prioritizer(self) -> UrlPrioritizer:
        if self._prioritizer is None:
            raise RuntimeError("AdaptiveCrawlingComponent is not initialized")
        return self._prioritizer

    async def initialize(self, core: "CrawlCore") -> None:
        await super().initialize(core)
        if self._prioritizer is None:
            self._prioritizer = UrlPrioritizer(log=self._log_sink())

        path = self._metadata_path()
        if path:
            try:
                entries = read_json_snapshot(path)
            except Exception as exc:  # noqa: BLE001
                self.log_error(exc, "Error loading page metadata")
            else:
                if entries:
                    self._prioritizer.load_metadata(entries)
        self.log_info("Adaptive crawling component initialized")

    async def on_run_started(self) -> None:
        self.prioritizer.initialize_queue([])

    async def on_run_completed(self) -> None:
        self._save_metadata()

    def on_run_stopped(self) -> None:
        self._save_metadata()

    def initialize_queue(self, seed_urls: Iterable[str]) -> None:
        self.prioritizer.initialize_queue(seed_urls)

    def enqueue(self, urls: Iterable[str]) -> int:
        return self.prioritizer.enqueue(urls)

    def next_batch(self, max_count: int) -> List[str]:
        return self.prioritizer.next_batch(max_count)

    def prioritize(self, urls: Iterable[str], max_count: int = 10) -> List[str]:
        return self.prioritizer.prioritize(urls, max_count)

    def record_visit(self, url: str, link_count: int, text: str) -> None:
        self.prioritizer.record_visit(url, link_count, text)

    def _metadata_path(self) -> Optional[str]:
        directory = self.config.output_directory
        return os.path.join(directory, METADATA_FILE) if directory else None

    def _save_metadata(self) -> None:
        path = self._metadata_path()
        if not path or self._prioritizer is None:
            return
        try:
            write_json_snapshot(path, self._prioritizer.export_metadata())
        except Exception as exc:  # noqa: BLE001
            self.log_error(exc, "Error saving page metadata")
