from __future__ import annotations

from threading import Lock
from typing import Dict, Iterable, Optional

from .models import PageMetadata


class MetadataStore:
    """Thread-safe map of per-URL page metadata and per-domain visit counts."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._pages: Dict[str, PageMetadata] = {}
        self._domain_visits: Dict[str, int] = {}

    def get(self, url: str) -> Optional[PageMetadata]:
        with self._lock:
            return self._pages.get(url)

    def contains(self, url: str) -> bool:
        with self._lock:
            return url in self._pages

    def put(self, metadata: PageMetadata) -> None:
        """Store metadata for its URL, replacing any previous entry."""
        with self._lock:
            self._pages[metadata.url] = metadata

    def merge(self, entries: Iterable[PageMetadata]) -> int:
        count = 0
        with self._lock:
            for entry in entries:
                self._pages[entry.url] = entry
                count += 1
        return count

    def visit_count(self, domain: str) -> int:
        with self._lock:
            return self._domain_visits.get(domain, 0)

    def increment_visit(self, domain: str) -> int:
        with self._lock:
            count = self._domain_visits.get(domain, 0) + 1
            self._domain_visits[domain] = count
            return count

    def snapshot(self) -> Dict[str, PageMetadata]:
        with self._lock:
            return dict(self._pages)

    def domain_visits(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._domain_visits)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pages)
