from __future__ import annotations

import logging
import re
from collections import Counter
from datetime import datetime
from threading import Lock
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Union
from urllib.parse import urlsplit

from .metadata_store import MetadataStore
from .models import PageMetadata, ScoredUrl

logger = logging.getLogger(__name__)

BASE_SCORE = 1.0
NOVELTY_BONUS = 2.0
DOMAIN_VISIT_PENALTY = 0.1
MAX_DOMAIN_PENALTY = 0.5
SEGMENT_PENALTY = 0.2
PREFERRED_TERM_BONUS = 0.5
AVOIDED_EXTENSION_PENALTY = 5.0

PREFERRED_TERMS = ("about", "faq", "help", "guide", "news", "contact")
AVOIDED_EXTENSIONS = (".pdf", ".jpg", ".png", ".gif", ".mp3", ".mp4", ".zip")
STOP_WORDS = frozenset(
    ["the", "and", "a", "to", "in", "of", "is", "you", "that", "it", "this", "with", "from", "have", "your"]
)
MAX_KEYWORDS = 10

_WORD_SPLIT = re.compile(r"\W+")


def url_domain(url: str) -> str:
    """Return the lower-cased host of an absolute URL; raise ValueError otherwise."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        raise ValueError(f"not an absolute URL: {url!r}")
    return parts.hostname


def path_segment_count(url: str) -> int:
    """Count path segments the way URI segment lists do: "/" is one segment."""
    path = urlsplit(url).path or "/"
    return 1 + sum(1 for piece in path.split("/") if piece)


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> List[str]:
    words = [w for w in _WORD_SPLIT.split(text.lower()) if len(w) > 3 and w not in STOP_WORDS]
    return [word for word, _ in Counter(words).most_common(limit)]


def importance(content_length: int, link_count: int, keyword_count: int) -> float:
    """Importance of a page in [0, 3] from its size, hub-ness and keyword richness."""
    return (
        min(1.0, content_length / 5000.0)
        + min(1.0, link_count / 30.0)
        + min(1.0, keyword_count / 5.0)
    )


class UrlPrioritizer:
    """Scores and ranks candidate URLs from visit history and URL heuristics.

    Unvisited URLs, shallow paths, less-visited domains and "about"-style
    pages rank higher; binary downloads sink to the bottom. Visit results
    fed back through :meth:`record_visit` change later scores.
    """

    def __init__(
        self,
        store: Optional[MetadataStore] = None,
        log: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._store = store or MetadataStore()
        self._log = log or logger.info
        self._queue_lock = Lock()
        self._queue: List[str] = []

    @property
    def store(self) -> MetadataStore:
        return self._store

    def load_metadata(self, entries: Union[Mapping[str, Union[PageMetadata, dict]], Iterable[PageMetadata]]) -> None:
        """Bulk-import page metadata; later entries for a URL win."""
        values = entries.values() if isinstance(entries, Mapping) else entries
        parsed = [e if isinstance(e, PageMetadata) else PageMetadata.from_dict(e) for e in values]
        count = self._store.merge(parsed)
        self._log(f"Loaded metadata for {count} pages")

    def export_metadata(self) -> Dict[str, dict]:
        return {url: meta.to_dict() for url, meta in self._store.snapshot().items()}

    def initialize_queue(self, seed_urls: Iterable[str]) -> None:
        with self._queue_lock:
            self._queue = list(seed_urls)
            size = len(self._queue)
        self._log(f"Initialized priority queue with {size} URLs")

    def enqueue(self, urls: Iterable[str]) -> int:
        """Append URLs not already queued; return how many were added."""
        added = 0
        with self._queue_lock:
            queued = set(self._queue)
            for url in urls:
                if url not in queued:
                    self._queue.append(url)
                    queued.add(url)
                    added += 1
        return added

    @property
    def queue(self) -> List[str]:
        with self._queue_lock:
            return list(self._queue)

    def next_batch(self, max_count: int = 10) -> List[str]:
        """Remove and return the best ``max_count`` URLs from the queue."""
        with self._queue_lock:
            candidates = list(self._queue)
        batch = self.prioritize(candidates, max_count)
        taken = set(batch)
        with self._queue_lock:
            self._queue = [url for url in self._queue if url not in taken]
        return batch

    def prioritize(self, urls: Optional[Iterable[str]], max_count: int = 10) -> List[str]:
        """Return the top ``max_count`` URLs by descending score (stable on ties)."""
        if not urls:
            return []
        url_list = list(urls)
        if not url_list or max_count <= 0:
            return []

        self._log(f"Prioritizing {len(url_list)} URLs...")
        scored = [self.score(url) for url in url_list]
        # sorted() is stable, so equal scores keep input order
        ranked = sorted(scored, key=lambda s: s.score, reverse=True)[:max_count]
        self._log(f"Selected top {len(ranked)} URLs based on priority scores")
        return [s.url for s in ranked]

    def score(self, url: str) -> ScoredUrl:
        try:
            domain = url_domain(url)
            score = BASE_SCORE

            if not self._store.contains(url):
                score += NOVELTY_BONUS

            score -= min(MAX_DOMAIN_PENALTY, self._store.visit_count(domain) * DOMAIN_VISIT_PENALTY)
            score -= SEGMENT_PENALTY * (path_segment_count(url) - 1)

            lower_url = url.lower()
            for term in PREFERRED_TERMS:
                if term in lower_url:
                    score += PREFERRED_TERM_BONUS
            for ext in AVOIDED_EXTENSIONS:
                if lower_url.endswith(ext):
                    score -= AVOIDED_EXTENSION_PENALTY

            return ScoredUrl(url=url, score=score)
        except Exception as exc:  # noqa: BLE001
            return ScoredUrl(url=url, score=0.0, failed=True, reason=f"{type(exc).__name__}: {exc}")

    def record_visit(self, url: str, extracted_link_count: int, extracted_text: Optional[str]) -> None:
        """Store fresh metadata for a visited page and count the visit for its domain."""
        try:
            if extracted_text is None:
                raise ValueError("extracted text is missing")
            domain = url_domain(url)
            keywords = extract_keywords(extracted_text)
            metadata = PageMetadata(
                url=url,
                content_length=len(extracted_text),
                links_count=extracted_link_count,
                last_visited=datetime.now(),
                keywords=keywords,
                importance_score=importance(len(extracted_text), extracted_link_count, len(keywords)),
            )
            self._store.put(metadata)
            self._store.increment_visit(domain)
            self._log(
                f"Updated metadata for {url}: Content length={metadata.content_length}, "
                f"Links={extracted_link_count}"
            )
        except Exception as exc:  # noqa: BLE001
            self._log(f"Error updating page metadata for {url}: {exc}")
