from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional

from .cancellation import CancellationToken
from .components.base import Capability, CrawlComponent, UrlProcessor
from .config import CrawlerConfig
from .errors import CoreStateError, DuplicateCapabilityError

logger = logging.getLogger(__name__)


class CoreState(Enum):
    UNCONFIGURED = "unconfigured"
    INITIALIZED = "initialized"
    RUNNING = "running"
    STOPPED = "stopped"
    COMPLETED = "completed"
    DISPOSED = "disposed"


class CrawlCore:
    """Owns the registered components and drives them through crawl runs.

    Components are registered before initialisation, each under the
    capabilities it declares. ``initialize`` hands every component this core
    so it can find its siblings by capability. A run broadcasts start and
    completion to every component and hands the start URL to the
    ``URL_PROCESSOR``. ``cancel`` signals the run's cancellation token, which
    components observe cooperatively.

    Only lifecycle failures escape: a component that fails to initialise
    aborts :meth:`initialize` (and :meth:`run`). Errors inside run hooks and
    disposal are logged and do not stop the other components.
    """

    def __init__(self, config: CrawlerConfig, log: Optional[Callable[[str], None]] = None) -> None:
        self._config = config
        self._log_callback = log
        self._components: List[CrawlComponent] = []
        self._by_capability: Dict[Capability, CrawlComponent] = {}
        self._state = CoreState.UNCONFIGURED
        self._cancellation = CancellationToken()

    @property
    def config(self) -> CrawlerConfig:
        return self._config

    @property
    def state(self) -> CoreState:
        return self._state

    @property
    def cancellation(self) -> CancellationToken:
        """Cancellation token of the current (or most recent) run."""
        return self._cancellation

    @property
    def components(self) -> List[CrawlComponent]:
        return list(self._components)

    def add_component(self, component: CrawlComponent) -> None:
        if self._state is CoreState.DISPOSED:
            raise CoreStateError("Cannot add components to a disposed core")
        if self._state is not CoreState.UNCONFIGURED:
            raise CoreStateError("Cannot add components after initialization")
        if component is None:
            raise ValueError("component is required")

        for capability in component.capabilities:
            existing = self._by_capability.get(capability)
            if existing is not None:
                raise DuplicateCapabilityError(
                    f"{component.name} and {existing.name} both provide {capability.value}"
                )
        for capability in component.capabilities:
            self._by_capability[capability] = component
        self._components.append(component)
        self.log(f"Component {component.name} added to crawler")

    def get_component(self, capability: Capability) -> Optional[CrawlComponent]:
        return self._by_capability.get(capability)

    def has_component(self, capability: Capability) -> bool:
        return capability in self._by_capability

    async def initialize(self) -> None:
        if self._state is CoreState.DISPOSED:
            raise CoreStateError("Cannot initialize a disposed core")
        if self._state is not CoreState.UNCONFIGURED:
            return

        self.log("Initializing crawler components...")
        for component in self._components:
            try:
                await component.initialize(self)
            except Exception as exc:
                self.log_error(exc, f"Failed to initialize component {component.name}")
                raise
            self.log(f"Component {component.name} initialized")

        self._state = CoreState.INITIALIZED
        self.log("Crawler initialization completed")

    async def run(self, start_url: Optional[str] = None) -> CoreState:
        """Run one crawl from ``start_url`` (default: the configured start URL)."""
        if self._state is CoreState.DISPOSED:
            raise CoreStateError("Cannot run a disposed core")
        if self._state is CoreState.RUNNING:
            raise CoreStateError("A run is already in progress")
        if self._state is CoreState.UNCONFIGURED:
            await self.initialize()

        url = start_url or self._config.start_url
        self.log("Starting crawl...")
        self._cancellation = CancellationToken()
        self._state = CoreState.RUNNING

        for component in self._components:
            try:
                await component.on_run_started()
            except Exception as exc:  # noqa: BLE001
                self.log_error(exc, f"Error in component {component.name} during run start")

        processor = self.get_component(Capability.URL_PROCESSOR)
        if not isinstance(processor, UrlProcessor):
            self.log_warning("No URL processor component found, unable to process URLs")
        elif not url:
            self.log_warning("No start URL configured, nothing to crawl")
        else:
            try:
                await processor.process_url(url)
            except Exception as exc:  # noqa: BLE001
                self.log_error(exc, f"Error processing start URL: {url}")

        for component in self._components:
            try:
                await component.on_run_completed()
            except Exception as exc:  # noqa: BLE001
                self.log_error(exc, f"Error in component {component.name} during run completion")

        if self._state is CoreState.RUNNING:
            self._state = CoreState.STOPPED if self._cancellation.cancelled else CoreState.COMPLETED
        self.log(f"Crawl {self._state.value}")
        return self._state

    def cancel(self) -> None:
        """Signal cancellation and let every component react to the stop."""
        if self._state is CoreState.DISPOSED:
            return

        self.log("Stopping crawl...")
        self._cancellation.cancel()
        for component in self._components:
            try:
                component.on_run_stopped()
            except Exception as exc:  # noqa: BLE001
                self.log_error(exc, f"Error in component {component.name} during run stop")
        self.log("Crawl stopped")

    def dispose(self) -> None:
        if self._state is CoreState.DISPOSED:
            return

        self.cancel()
        self._state = CoreState.DISPOSED
        for component in self._components:
            try:
                component.dispose()
            except Exception as exc:  # noqa: BLE001
                self.log_error(exc, f"Error disposing component {component.name}")
        self.log("Crawler disposed")

    def log(self, message: str) -> None:
        if self._log_callback:
            self._log_callback(message)
        else:
            logger.info(message)

    def log_warning(self, message: str) -> None:
        if self._log_callback:
            self._log_callback(f"Warning: {message}")
        else:
            logger.warning(message)

    def log_error(self, exc: BaseException, message: str) -> None:
        if self._log_callback:
            self._log_callback(f"{message}: {exc}")
        else:
            logger.error("%s: %s", message, exc, exc_info=exc)
