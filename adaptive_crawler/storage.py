from __future__ import annotations

import json
import logging
import os
import queue
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Dict, List, Optional

from .errors import StorageError
from .models import PageVersion

logger = logging.getLogger(__name__)


def read_json_snapshot(path: str) -> Dict[str, Any]:
    """Read a JSON object written by :func:`write_json_snapshot`; {} if absent."""
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        raise StorageError(f"cannot read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise StorageError(f"{path} does not hold a JSON object")
    return data


def write_json_snapshot(path: str, data: Dict[str, Any]) -> None:
    """Atomically replace ``path`` with ``data`` as JSON."""
    directory = os.path.dirname(path)
    tmp_path = f"{path}.tmp"
    try:
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
    except (OSError, TypeError, ValueError) as exc:
        raise StorageError(f"cannot write {path}: {exc}") from exc


class VersionHistoryStore(ABC):
    """Durable home for page versions.

    The in-memory version history stays authoritative; stores are written
    best-effort and read once per scraper at registration.
    """

    @abstractmethod
    def save(self, version: PageVersion) -> None:
        """Persist a single page version."""

    @abstractmethod
    def load(self, scraper_id: str) -> Dict[str, List[PageVersion]]:
        """Return url -> versions previously saved for ``scraper_id``."""

    @abstractmethod
    def close(self) -> None:
        """Flush pending writes and release resources."""


class NullVersionStore(VersionHistoryStore):
    """Store that keeps nothing; used when no output directory is configured."""

    def save(self, version: PageVersion) -> None:
        return None

    def load(self, scraper_id: str) -> Dict[str, List[PageVersion]]:
        return {}

    def close(self) -> None:
        return None


class JsonlVersionStore(VersionHistoryStore):
    """Appends page versions as JSON Lines using a background writer thread.

    The file is opened on construction, so an unusable path raises
    ``OSError`` here rather than in the writer thread.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._file = open(path, "a", encoding="utf-8")
        self._queue: queue.Queue[Optional[PageVersion]] = queue.Queue()
        self._thread = threading.Thread(target=self._writer, daemon=True)
        self._thread.start()
        self._closed = False

    @property
    def path(self) -> str:
        return self._path

    def save(self, version: PageVersion) -> None:
        """Enqueue a version for background writing."""
        if self._closed:
            raise StorageError(f"store for {self._path} is closed")
        self._queue.put(version)

    def flush(self) -> None:
        """Block until everything enqueued so far is on disk."""
        self._queue.join()

    def load(self, scraper_id: str) -> Dict[str, List[PageVersion]]:
        if not os.path.exists(self._path):
            return {}
        history: Dict[str, List[PageVersion]] = defaultdict(list)
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                for line_no, line in enumerate(f, 1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        version = PageVersion.from_dict(json.loads(line))
                    except (ValueError, KeyError) as exc:
                        logger.warning("Skipping unreadable version record %s:%d (%s)", self._path, line_no, exc)
                        continue
                    if version.scraper_id == scraper_id:
                        history[version.url].append(version)
        except OSError as exc:
            raise StorageError(f"cannot read {self._path}: {exc}") from exc

        # lines are appended oldest first
        for versions in history.values():
            versions.reverse()
        return dict(history)

    def close(self) -> None:
        """Signal the writer thread to flush and stop."""
        if self._closed:
            return
        self._closed = True
        self._queue.put(None)
        self._thread.join(timeout=5)
        if not self._thread.is_alive():
            self._file.close()

    def _writer(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is None:
                    break
                self._file.write(json.dumps(item.to_dict(), ensure_ascii=False) + "\n")
                self._file.flush()
            except (OSError, TypeError, ValueError) as exc:
                logger.error("Failed to persist version of %s: %s", getattr(item, "url", "?"), exc)
            finally:
                self._queue.task_done()
