from __future__ import annotations

import hashlib
import logging
import re
import threading
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Union

from .models import (
    ChangeImportance,
    ChangeNotification,
    ChangeType,
    PageVersion,
    ScraperContentSettings,
    SignificantChangesResult,
)
from .storage import NullVersionStore, VersionHistoryStore

logger = logging.getLogger(__name__)

DEFAULT_SCRAPER_ID = "default"
ADDED = "Added"
REMOVED = "Removed"

_PARAGRAPH_BREAK = re.compile(r"\r\n\r\n|\n\n")


def content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def split_paragraphs(text: str) -> List[str]:
    """Split on blank lines, strip each paragraph and drop empty ones."""
    return [p.strip() for p in _PARAGRAPH_BREAK.split(text or "") if p.strip()]


def _contains_ignore_case(paragraphs: Iterable[str], candidate: str) -> bool:
    folded = candidate.casefold()
    return any(p.casefold() == folded for p in paragraphs)


def classify(old_text: Optional[str], new_text: Optional[str]) -> ChangeType:
    """Classify how much of the old text's paragraphs survive in the new text."""
    if not old_text or not new_text:
        return ChangeType.MAJOR

    old_paragraphs = split_paragraphs(old_text)
    new_paragraphs = split_paragraphs(new_text)
    if not old_paragraphs or not new_paragraphs:
        return ChangeType.MAJOR

    common = sum(1 for p in old_paragraphs if _contains_ignore_case(new_paragraphs, p))
    similarity = common / max(len(old_paragraphs), len(new_paragraphs))

    if similarity > 0.9:
        return ChangeType.MINOR
    if similarity > 0.7:
        return ChangeType.MODERATE
    return ChangeType.MAJOR


def extract_changed_sections(old_text: Optional[str], new_text: Optional[str]) -> Dict[str, str]:
    old_paragraphs = split_paragraphs(old_text or "")
    new_paragraphs = split_paragraphs(new_text or "")

    added = [p for p in new_paragraphs if not _contains_ignore_case(old_paragraphs, p)]
    removed = [p for p in old_paragraphs if not _contains_ignore_case(new_paragraphs, p)]

    sections: Dict[str, str] = {}
    if added:
        sections[ADDED] = "\n\n".join(added)
    if removed:
        sections[REMOVED] = "\n\n".join(removed)
    return sections


def importance_for(change_type: ChangeType) -> ChangeImportance:
    if change_type is ChangeType.MAJOR:
        return ChangeImportance.HIGH
    if change_type is ChangeType.MODERATE:
        return ChangeImportance.MEDIUM
    return ChangeImportance.LOW


def change_percentage(sections: Mapping[str, str], new_text: Optional[str]) -> float:
    changed_words = sum(len(sections.get(key, "").split()) for key in (ADDED, REMOVED))
    new_words = len((new_text or "").split())
    if new_words == 0:
        return 100.0 if changed_words else 0.0
    return changed_words / new_words * 100.0


def summarize(
    change_type: ChangeType,
    sections: Mapping[str, str],
    percentage: Optional[float] = None,
    url: Optional[str] = None,
) -> str:
    lines = []
    if url:
        lines.append(f"Content change for {url}")
    lines.append(f"Change type: {change_type.name.title()}")
    if percentage is not None:
        lines.append(f"Changed words: {percentage:.1f}%")
    for key in (ADDED, REMOVED):
        if key in sections:
            count = len(split_paragraphs(sections[key]))
            lines.append(f"{key}: {count} paragraph{'s' if count != 1 else ''}")
    return "\n".join(lines)


class ContentChangeDetector:
    """Versions fetched pages per scraper and classifies how they change.

    Versions are content-addressed: tracking byte-identical content twice
    keeps the existing latest version. Each (scraper, URL) history is kept
    newest first and pruned to the scraper's ``max_versions_to_keep``.
    Moderate and major changes can queue a :class:`ChangeNotification` that
    callers drain with :meth:`pending_notifications`.
    """

    def __init__(
        self,
        store: Optional[VersionHistoryStore] = None,
        log: Optional[Callable[[str], None]] = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store or NullVersionStore()
        self._log = log or logger.info
        self._now = now
        self._lock = threading.RLock()
        self._settings: Dict[str, ScraperContentSettings] = {}
        self._history: Dict[str, Dict[str, List[PageVersion]]] = {}
        self._notifications: List[ChangeNotification] = []

    def register_scraper(
        self,
        scraper_id: str,
        scraper_name: str,
        max_versions_to_keep: int = 5,
        track_history: bool = True,
        notify_on_change: bool = False,
        email: Optional[str] = None,
    ) -> ScraperContentSettings:
        """Create or update the content settings for a scraper."""
        with self._lock:
            settings = self._settings.get(scraper_id)
            first_registration = settings is None
            if first_registration:
                settings = ScraperContentSettings(scraper_id=scraper_id, scraper_name=scraper_name)
                self._settings[scraper_id] = settings
                self._history.setdefault(scraper_id, {})
            settings.scraper_name = scraper_name
            settings.max_versions_to_keep = max(1, max_versions_to_keep)
            settings.track_changes_history = track_history
            settings.notify_on_changes = notify_on_change
            settings.notification_email = email
            for versions in self._history[scraper_id].values():
                del versions[settings.max_versions_to_keep:]

        if first_registration:
            self._log(f"Registered scraper {scraper_id} ({scraper_name})")
            self._load_persisted(scraper_id)
        return settings

    def get_settings(self, scraper_id: str) -> Optional[ScraperContentSettings]:
        with self._lock:
            return self._settings.get(scraper_id)

    def track_version(
        self,
        url: str,
        content: Optional[str],
        text_content: Optional[str],
        scraper_id: str = DEFAULT_SCRAPER_ID,
    ) -> PageVersion:
        """Record a fetched page and return the version now considered latest."""
        if content is None:
            self._log(f"No content supplied for {url}; tracking it as empty")
            content = ""
        if text_content is None:
            text_content = content
        if self.get_settings(scraper_id) is None:
            self.register_scraper(scraper_id, scraper_id)

        digest = content_hash(content)
        notification = None
        with self._lock:
            settings = self._settings[scraper_id]
            versions = self._history[scraper_id].get(url)
            new_version = PageVersion(
                url=url,
                content=content,
                text_content=text_content,
                content_hash=digest,
                version_date=self._now(),
                scraper_id=scraper_id,
            )

            if not versions:
                self._history[scraper_id][url] = [new_version]
                self._log(f"Created first version for {url}")
            else:
                latest = versions[0]
                if latest.content_hash == digest:
                    self._log(f"No content change detected for {url}")
                    return latest

                change = classify(latest.text_content, text_content)
                new_version.change_from_previous = change
                self._log(f"Detected {change.name.title()} change for {url}")
                if change >= ChangeType.MODERATE:
                    new_version.changed_sections = extract_changed_sections(latest.text_content, text_content)
                    self._log(f"Extracted {len(new_version.changed_sections)} changed sections")
                    if settings.notify_on_changes and settings.notification_email:
                        notification = self._build_notification(settings, new_version)
                        self._notifications.append(notification)

                # newest first in arrival order
                versions.insert(0, new_version)
                if len(versions) > settings.max_versions_to_keep:
                    del versions[settings.max_versions_to_keep:]
                    self._log(f"Pruned version history for {url} to {settings.max_versions_to_keep} versions")

            track_history = settings.track_changes_history

        if notification is not None:
            self._log(f"Queued change notification for {url} to {settings.notification_email}")
        if track_history:
            self._persist(new_version)
        return new_version

    def classify(self, old_text: Optional[str], new_text: Optional[str]) -> ChangeType:
        return classify(old_text, new_text)

    def extract_changed_sections(self, old_text: Optional[str], new_text: Optional[str]) -> Dict[str, str]:
        return extract_changed_sections(old_text, new_text)

    def detect_significant_changes(
        self,
        old_content: Optional[str],
        new_content: Optional[str],
        url: Optional[str] = None,
    ) -> SignificantChangesResult:
        """Compare two contents without touching any stored history."""
        old_content = old_content or ""
        new_content = new_content or ""
        if content_hash(old_content) == content_hash(new_content):
            return SignificantChangesResult(
                url=url,
                hash_changed=False,
                change_type=ChangeType.NONE,
                summary="No significant changes detected",
            )

        change = classify(old_content, new_content)
        sections = extract_changed_sections(old_content, new_content)
        percentage = change_percentage(sections, new_content)
        return SignificantChangesResult(
            url=url,
            hash_changed=True,
            change_type=change,
            changed_sections=sections,
            change_percentage=percentage,
            importance=importance_for(change),
            summary=summarize(change, sections, percentage, url),
        )

    def pending_notifications(self) -> List[ChangeNotification]:
        """Return and clear every queued change notification."""
        with self._lock:
            drained, self._notifications = self._notifications, []
        return drained

    @property
    def queued_notifications(self) -> int:
        with self._lock:
            return len(self._notifications)

    def get_versions(self, url: str, scraper_id: str = DEFAULT_SCRAPER_ID) -> List[PageVersion]:
        with self._lock:
            return list(self._history.get(scraper_id, {}).get(url, []))

    def get_latest_version(self, url: str, scraper_id: str = DEFAULT_SCRAPER_ID) -> Optional[PageVersion]:
        versions = self.get_versions(url, scraper_id)
        return versions[0] if versions else None

    def get_previous_version(self, url: str, scraper_id: str = DEFAULT_SCRAPER_ID) -> Optional[PageVersion]:
        versions = self.get_versions(url, scraper_id)
        return versions[1] if len(versions) > 1 else None

    def load_version_history(
        self,
        history: Mapping[str, Iterable[Union[PageVersion, dict]]],
        scraper_id: str = DEFAULT_SCRAPER_ID,
    ) -> None:
        """Merge url -> versions into memory; loaded lists replace existing ones.

        Each list is taken newest first, the order :meth:`export_version_history`
        and the stores produce.
        """
        if self.get_settings(scraper_id) is None:
            self.register_scraper(scraper_id, scraper_id)
        with self._lock:
            limit = self._settings[scraper_id].max_versions_to_keep
            target = self._history[scraper_id]
            for url, raw_versions in history.items():
                versions = [v if isinstance(v, PageVersion) else PageVersion.from_dict(v) for v in raw_versions]
                target[url] = versions[:limit]
        self._log(f"Loaded version history for {len(history)} URLs")

    def export_version_history(self, scraper_id: str = DEFAULT_SCRAPER_ID) -> Dict[str, List[dict]]:
        with self._lock:
            return {
                url: [v.to_dict() for v in versions]
                for url, versions in self._history.get(scraper_id, {}).items()
            }

    def close(self) -> None:
        self._store.close()

    def _build_notification(self, settings: ScraperContentSettings, version: PageVersion) -> ChangeNotification:
        return ChangeNotification(
            url=version.url,
            scraper_id=settings.scraper_id,
            scraper_name=settings.scraper_name,
            change_type=version.change_from_previous,
            detected_at=version.version_date,
            changed_sections=dict(version.changed_sections),
            summary=summarize(version.change_from_previous, version.changed_sections, url=version.url),
        )

    def _load_persisted(self, scraper_id: str) -> None:
        try:
            history = self._store.load(scraper_id)
        except Exception as exc:  # noqa: BLE001
            self._log(f"Error loading version history for {scraper_id}: {exc}")
            return
        if history:
            self.load_version_history(history, scraper_id)

    def _persist(self, version: PageVersion) -> None:
        try:
            self._store.save(version)
        except Exception as exc:  # noqa: BLE001
            self._log(f"Error saving version of {version.url}: {exc}")
