"""
Error taxonomy shared by the scrape and reconciliation pipelines.

Only run-level failures travel as exceptions past a row boundary; everything
else is caught by the stage that raised it and recorded on the result row.
"""

from __future__ import annotations


class ScrapeError(Exception):
    """Base class for every error raised by the platform."""


class StageTimeout(ScrapeError):
    """A bounded wait (tab load, URL check, script, row budget) was exceeded."""

    def __init__(self, label: str) -> None:
        self.label = label
        super().__init__(f"{label} timeout")


class HttpStatusError(ScrapeError):
    """Non-2xx HTTP response. Keeps the body for verbatim error passthrough."""

    def __init__(self, status: int, body: str = "", url: str = "") -> None:
        self.status = status
        self.body = body
        self.url = url
        super().__init__(f"HTTP {status}")


class PayloadTooLarge(ScrapeError):
    """Downloaded payload exceeds the configured byte cap."""

    def __init__(self, size: int) -> None:
        self.size = size
        super().__init__(f"Attachment too large ({size} bytes)")


class RunAlreadyActive(ScrapeError):
    def __init__(self) -> None:
        super().__init__("Scrape already running")


class SummaryError(ScrapeError):
    """Summarization failed; the message is meant for the operator."""
