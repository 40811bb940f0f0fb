from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Callable, FrozenSet, Optional

from ..config import CrawlerConfig
from ..models import ExtractedContent, FetchResult

if TYPE_CHECKING:
    from ..core import CrawlCore


class Capability(Enum):
    """What a component does for the core; at most one component per capability."""

    URL_PROCESSOR = "url_processor"
    CONTENT_EXTRACTOR = "content_extractor"
    BROWSER_HANDLER = "browser_handler"
    RATE_LIMITER = "rate_limiter"
    CHANGE_DETECTOR = "change_detector"
    URL_PRIORITIZER = "url_prioritizer"
    METRICS = "metrics"


class CrawlComponent(ABC):
    """Base class for pluggable pieces driven through a run by :class:`CrawlCore`.

    Lifecycle: ``initialize(core)`` once, then per run ``on_run_started`` and
    ``on_run_completed`` (or ``on_run_stopped`` on cancellation), and finally
    ``dispose``. Every hook is a no-op unless overridden.
    """

    capabilities: FrozenSet[Capability] = frozenset()

    def __init__(self, log: Optional[Callable[[str], None]] = None) -> None:
        self._core: Optional["CrawlCore"] = None
        self._log_callback = log

    @property
    def core(self) -> Optional["CrawlCore"]:
        return self._core

    @property
    def config(self) -> CrawlerConfig:
        if self._core is None:
            raise RuntimeError(f"{type(self).__name__} is not initialized")
        return self._core.config

    @property
    def name(self) -> str:
        return type(self).__name__

    async def initialize(self, core: "CrawlCore") -> None:
        self._core = core

    async def on_run_started(self) -> None:
        return None

    async def on_run_completed(self) -> None:
        return None

    def on_run_stopped(self) -> None:
        """Called synchronously when the run is cancelled."""
        return None

    def dispose(self) -> None:
        return None

    def get_component(self, capability: Capability) -> Optional["CrawlComponent"]:
        return self._core.get_component(capability) if self._core else None

    def log_info(self, message: str) -> None:
        if self._log_callback:
            self._log_callback(message)
        elif self._core:
            self._core.log(message)

    def log_warning(self, message: str) -> None:
        if self._log_callback:
            self._log_callback(f"Warning: {message}")
        elif self._core:
            self._core.log_warning(message)

    def log_error(self, exc: BaseException, message: str) -> None:
        if self._log_callback:
            self._log_callback(f"{message}: {exc}")
        elif self._core:
            self._core.log_error(exc, message)

    def _log_sink(self) -> Callable[[str], None]:
        """Free-text callback handed to the engines a component wraps."""
        return self.log_info


class UrlProcessor(CrawlComponent):
    capabilities = frozenset({Capability.URL_PROCESSOR})

    @abstractmethod
    async def process_url(self, url: str) -> None:
        """Crawl starting from ``url`` until the run's work is done."""


class ContentExtractor(CrawlComponent):
    capabilities = frozenset({Capability.CONTENT_EXTRACTOR})

    @abstractmethod
    def extract(self, html: str, base_url: str) -> ExtractedContent:
        """Return the readable text and absolute links of a page."""


class BrowserHandler(CrawlComponent):
    """Renders pages that need a real browser; implementations live outside the package."""

    capabilities = frozenset({Capability.BROWSER_HANDLER})

    @abstractmethod
    def needs_browser(self, url: str) -> bool:
        ...

    @abstractmethod
    async def navigate(self, url: str) -> FetchResult:
        ...
