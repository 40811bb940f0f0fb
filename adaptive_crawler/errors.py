from __future__ import annotations


class CrawlerError(Exception):
    """Base class for errors raised by the crawler package."""


class CoreStateError(CrawlerError):
    """A lifecycle operation was attempted in a state that does not allow it."""


class DuplicateCapabilityError(CoreStateError):
    """Two components were registered for the same capability."""


class ComponentInitializationError(CrawlerError):
    """A component could not be initialised."""


class RunCancelledError(CrawlerError):
    """The current run was cancelled."""


class StorageError(CrawlerError):
    """Reading or writing persisted version history failed."""
