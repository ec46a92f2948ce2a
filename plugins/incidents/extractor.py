"""
:class:`PageExtractor` for the ticketing and admin portals.
"""

from __future__ import annotations

from typing import List, Optional

from core.config import TimeoutSettings
from core.interfaces import PageExtractor, Tab
from core.models import AdminOutcome, ApplicationKeys, DetailOutcome, DetailSelectors, ListRow

from .admin import run_admin_search
from .detail_scraper import scrape_detail
from .list_scraper import scrape_list_rows


class PortalExtractor(PageExtractor):
    """Reads portal pages from frame HTML snapshots plus a few in-page calls."""

    def __init__(
        self,
        timeouts: Optional[TimeoutSettings] = None,
        default_selectors: Optional[DetailSelectors] = None,
    ) -> None:
        self.timeouts = timeouts or TimeoutSettings()
        self.default_selectors = default_selectors or DetailSelectors()

    async def list_rows(self, tab: Tab) -> List[ListRow]:
        return await scrape_list_rows(tab)

    async def detail(self, tab: Tab, selectors: Optional[DetailSelectors] = None) -> DetailOutcome:
        return await scrape_detail(
            tab,
            selectors or self.default_selectors,
            poll_interval=self.timeouts.detail_poll_interval,
            wait_timeout=self.timeouts.detail_container_wait,
        )

    async def admin_search(self, tab: Tab, keys: ApplicationKeys, date_range: str) -> AdminOutcome:
        return await run_admin_search(tab, keys, date_range, self.timeouts)
