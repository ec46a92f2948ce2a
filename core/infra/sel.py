"""
sel.py - Async Playwright helpers: one browser session, many short-lived tabs.

Key points
----------
* Three ways to get a session:
    - ``cdp_url``: attach to the operator's running Chrome (keeps the portal login)
    - ``user_data_dir``: persistent profile directory
    - neither: fresh browser + context
* :class:`PlaywrightTab` adapts a Playwright ``Page`` to :class:`core.interfaces.Tab`.
* Async context-manager support:
    async with PlaywrightClient() as pw:
        tab = await pw.open_tab()
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any, Dict, List, Optional, Type

try:
    from playwright.async_api import (
        async_playwright,
        Browser as PlaywrightBrowser,
        BrowserContext,
        BrowserType,
        Frame,
        Page,
        TimeoutError as PlaywrightTimeoutError,
    )
except ImportError as e:  # pragma: no cover
    raise ImportError(
        "Package 'playwright' is required.  Install with:  pip install playwright"
    ) from e

from core.errors import ScrapeError, StageTimeout
from core.interfaces import Browser, Tab

logger = logging.getLogger(__name__)


class PlaywrightTab(Tab):
    """A Playwright ``Page`` seen through the :class:`Tab` interface."""

    def __init__(self, page: Page) -> None:
        self.page = page

    @property
    def url(self) -> str:
        return self.page.url

    @property
    def main_frame(self) -> Frame:
        return self.page.main_frame

    @property
    def frames(self) -> List[Frame]:
        return list(self.page.frames)

    async def goto(self, url: str, timeout: float) -> None:
        try:
            await self.page.goto(url, wait_until="load", timeout=timeout * 1000)
        except PlaywrightTimeoutError as e:
            raise StageTimeout("Tab load") from e

    async def close(self) -> None:
        if not self.page.is_closed():
            await self.page.close()


class PlaywrightClient(Browser):
    """
    Thin wrapper around Playwright making the *90 % use-case* trivial
    while keeping escape hatches for everything else.

    Examples
    --------
    async with PlaywrightClient(cdp_url="http://localhost:9222") as pw:
        tab = await pw.active_tab()
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        browser_type: str = "chromium",
        timeout: float = 30_000,
        cdp_url: Optional[str] = None,
        user_data_dir: Optional[str] = None,
        list_url_prefix: Optional[str] = None,
        list_url: Optional[str] = None,
        extra_launch_kwargs: Optional[Dict[str, Any]] = None,
        extra_context_kwargs: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.headless = headless
        self.browser_type = browser_type.lower()
        self.timeout = timeout
        self.cdp_url = cdp_url
        self.user_data_dir = user_data_dir
        self.list_url_prefix = list_url_prefix
        self.list_url = list_url
        self._launch_kwargs = extra_launch_kwargs or {}
        self._context_kwargs = extra_context_kwargs or {}

        # Internal Playwright handles
        self._playwright = None
        self._browser: Optional[PlaywrightBrowser] = None
        self._context: Optional[BrowserContext] = None

    @classmethod
    def from_settings(cls, browser_cfg: Any, portal_cfg: Any = None) -> "PlaywrightClient":
        return cls(
            headless=browser_cfg.headless,
            browser_type=browser_cfg.browser_type,
            timeout=browser_cfg.timeout_ms,
            cdp_url=browser_cfg.cdp_url,
            user_data_dir=browser_cfg.user_data_dir,
            list_url_prefix=getattr(portal_cfg, "ticket_origin", None),
            list_url=getattr(portal_cfg, "list_url", None),
        )

    # --------------------------------------------------------------------- #
    # Async context-manager sugar
    async def __aenter__(self) -> "PlaywrightClient":  # noqa: D401
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.stop()

    # --------------------------------------------------------------------- #
    # Lifecycle helpers
    def _launcher(self) -> BrowserType:
        if self.browser_type == "chromium":
            return self._playwright.chromium
        if self.browser_type == "firefox":
            return self._playwright.firefox
        if self.browser_type == "webkit":
            return self._playwright.webkit
        raise ValueError(f"Unsupported browser type: {self.browser_type}")  # pragma: no cover

    async def start(self) -> None:
        """Launch or attach to a browser & context if not already started."""
        if self._context:
            return

        self._playwright = await async_playwright().start()
        launcher = self._launcher()
        context_kwargs: Dict[str, Any] = {"ignore_https_errors": True, **self._context_kwargs}

        if self.cdp_url:
            self._browser = await launcher.connect_over_cdp(self.cdp_url)
            contexts = self._browser.contexts
            self._context = contexts[0] if contexts else await self._browser.new_context(**context_kwargs)
            mode = f"cdp={self.cdp_url}"
        elif self.user_data_dir:
            self._context = await launcher.launch_persistent_context(
                self.user_data_dir,
                headless=self.headless,
                **self._launch_kwargs,
                **context_kwargs,
            )
            mode = f"profile={self.user_data_dir}"
        else:
            self._browser = await launcher.launch(headless=self.headless, **self._launch_kwargs)
            self._context = await self._browser.new_context(**context_kwargs)
            mode = "fresh"

        logger.info(
            "Playwright started: %s (headless=%s, %s)",
            self.browser_type,
            self.headless,
            mode,
        )

    async def stop(self) -> None:
        """Gracefully close context, browser & Playwright."""
        # An attached (CDP) browser belongs to the operator: disconnect only.
        if self._context and not self.cdp_url:
            await self._context.close()
        self._context = None
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        logger.info("Playwright stopped")

    # --------------------------------------------------------------------- #
    # Page helpers
    async def new_page(self) -> Page:
        """Return a fresh Page with sane defaults."""
        if not self._context:
            await self.start()
        page = await self._context.new_page()
        page.set_default_timeout(self.timeout)
        return page

    async def open_tab(self) -> PlaywrightTab:
        return PlaywrightTab(await self.new_page())

    async def active_tab(self) -> PlaywrightTab:
        """
        Pick the most recent page showing the ticketing portal; open
        ``list_url`` when no such page exists.
        """
        if not self._context:
            await self.start()

        pages = [p for p in self._context.pages if not p.is_closed()]
        if self.list_url_prefix:
            pages = [p for p in pages if p.url.startswith(self.list_url_prefix)]
        if pages:
            return PlaywrightTab(pages[-1])

        if self.list_url:
            page = await self.new_page()
            await page.goto(self.list_url, wait_until="load")
            return PlaywrightTab(page)

        raise ScrapeError("No active tab found")

    async def cookie_header(self, url: str) -> str:
        if not self._context:
            await self.start()
        cookies = await self._context.cookies([url])
        return "; ".join(f"{c['name']}={c['value']}" for c in cookies)
