"""Exception taxonomy for the scraping pipeline.

Only :class:`UpstreamUnavailable` is allowed to escape ``scrape()``; the others
are recovered inside the pipeline (a zero count, an empty field, a skipped URL).
"""

from __future__ import annotations


class CongresoError(Exception):
    """Base class for every error raised by congreso_ar."""


class NetworkError(CongresoError):
    """A fetch produced no successful response after all retries."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{reason} ({url})")
        self.url = url
        self.reason = reason


class DisallowedHost(CongresoError):
    """A URL points outside the chamber's host allow-list."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Host not allowed: {url}")
        self.url = url


class ParseStructureMissing(CongresoError):
    """An expected table or selector is absent from the page."""

    def __init__(self, what: str) -> None:
        super().__init__(f"Expected structure not found: {what}")
        self.what = what


class UpstreamUnavailable(CongresoError):
    """The chamber roster could not be fetched or held no usable rows."""

    def __init__(self, chamber: str, reason: str) -> None:
        super().__init__(f"{chamber}: {reason}")
        self.chamber = chamber
        self.reason = reason


class SummaryUnavailable(CongresoError):
    """No summary model produced an acceptable text."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
