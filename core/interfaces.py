"""
Core interfaces for the scraper platform.

The scraping code never touches Playwright directly: it talks to a
:class:`Browser` that hands out :class:`Tab` objects, and to a
:class:`PageExtractor` that knows how to read a given portal page.  How the
extractor reaches the page (in-page script vs. HTML snapshot) is an adapter
concern.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Protocol

from .models import (
    AdminOutcome,
    ApplicationKeys,
    AttachmentResult,
    Detail,
    DetailOutcome,
    DetailSelectors,
    Event,
    ListRow,
)


class Frame(Protocol):
    """Structural type of a browser frame; Playwright's ``Frame`` satisfies it."""

    name: str
    url: str
    child_frames: List["Frame"]

    async def content(self) -> str: ...

    async def evaluate(self, expression: str, arg: Any = None) -> Any: ...


class Tab(ABC):
    """One browser tab (page) opened for a single lookup."""

    @property
    @abstractmethod
    def url(self) -> str:
        """Current URL of the tab."""

    @property
    @abstractmethod
    def main_frame(self) -> Frame:
        pass

    @property
    @abstractmethod
    def frames(self) -> List[Frame]:
        """All frames of the tab, main frame first."""

    @abstractmethod
    async def goto(self, url: str, timeout: float) -> None:
        """Navigate and wait for the load event (``timeout`` in seconds)."""

    @abstractmethod
    async def close(self) -> None:
        pass

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        """Run a script in the main frame."""
        return await self.main_frame.evaluate(expression, arg)


class Browser(ABC):
    """Hands out tabs that share one authenticated browser session."""

    @abstractmethod
    async def active_tab(self) -> Tab:
        """Return the operator's tab showing the incident list."""

    @abstractmethod
    async def open_tab(self) -> Tab:
        """Open a new background tab (blank until :meth:`Tab.goto`)."""

    @abstractmethod
    async def cookie_header(self, url: str) -> str:
        """``Cookie`` header value carrying the session cookies for ``url``."""


class PageExtractor(ABC):
    """Reads structured data out of the two portals' pages."""

    @abstractmethod
    async def list_rows(self, tab: Tab) -> List[ListRow]:
        pass

    @abstractmethod
    async def detail(self, tab: Tab, selectors: Optional[DetailSelectors] = None) -> DetailOutcome:
        pass

    @abstractmethod
    async def admin_search(self, tab: Tab, keys: ApplicationKeys, date_range: str) -> AdminOutcome:
        pass


class Sink(ABC):
    """Abstract base class for event sinks.

    The orchestrator pushes every :class:`~core.models.Event` to each sink.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for this sink."""
        pass

    @abstractmethod
    async def handle(self, event: Event) -> None:
        """Handle an event."""
        pass

    async def close(self) -> None:
        """Optional cleanup hook."""
        pass


class AttachmentCollector(ABC):
    """Downloads the attachments referenced by an incident's activity stream."""

    @abstractmethod
    async def collect(self, detail: Optional[Detail]) -> List[AttachmentResult]:
        """One result per attachment; failures are error records, not exceptions."""

    async def close(self) -> None:
        pass


class ApplicationLookup(ABC):
    """Cross-references application keys in the admin portal."""

    @abstractmethod
    async def lookup(self, keys: ApplicationKeys) -> AdminOutcome:
        pass


class Summarizer(ABC):
    """Turns finished result records into per-incident summaries."""

    @abstractmethod
    async def summarize(self, incidents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Raise :class:`~core.errors.SummaryError` on failure."""

    async def close(self) -> None:
        pass
