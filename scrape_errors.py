"""
Error taxonomy for the scraper.

Only ValidationError and a top-level NavigationError reach the caller;
the rest are raised and recovered inside the engine so that a run always
degrades into the best available partial result.
"""


class ScrapeError(Exception):
    """Base class for scraper errors."""


class ValidationError(ScrapeError, ValueError):
    """Malformed request. Raised before any page access."""


class NavigationError(ScrapeError):
    """A page failed to load."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.url = url


class SelectorMissError(ScrapeError):
    """A list or field selector matched nothing."""


class PaginationStallError(ScrapeError):
    """No strategy could move the list to a new page."""


class EnrichmentError(ScrapeError):
    """A detail page could not be loaded or read."""


class WaitTimeoutError(ScrapeError):
    """A page-access wait ran out of time."""
