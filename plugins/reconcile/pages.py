"""
Playwright helpers shared by the Site 1 and Site 2 page objects.
"""

import logging

from playwright.async_api import Locator, Page

from core.config import SiteSettings
from core.errors import ScrapeError


logger = logging.getLogger(__name__)


def by_label(page: Page, label: str) -> Locator:
    """Input associated with ``label`` (accessible label, substring match)."""
    return page.get_by_label(label, exact=False)


async def safe_fill(locator: Locator, value: str, *, what: str = "input") -> None:
    if await locator.count() == 0:
        raise ScrapeError(f"{what} not found")
    await locator.first.fill(value)


async def safe_click(locator: Locator, *, what: str = "button") -> None:
    if await locator.count() == 0:
        raise ScrapeError(f"{what} not found")
    await locator.first.click()


async def wait_for_table(page: Page, site: SiteSettings, *, require_row: bool = True) -> None:
    """Table visible, then (unless ``require_row`` is off) at least one row attached."""
    timeout_ms = site.table_timeout * 1000
    await page.wait_for_selector(site.selectors.table, state="visible", timeout=timeout_ms)
    if require_row:
        await page.wait_for_selector(site.selectors.table_row, state="attached", timeout=timeout_ms)


async def login(page: Page, site: SiteSettings, name: str) -> None:
    """Fill the login form with the credentials named in ``site`` and submit."""
    logger.info(f"{name}: logging in")
    sel = site.selectors
    creds = site.credentials()
    if not creds["username"]:
        logger.warning(f"{name}: {site.username_env} is not set")

    await page.wait_for_selector(sel.username_input, timeout=site.login_timeout * 1000)
    await page.fill(sel.username_input, creds["username"])
    await page.fill(sel.password_input, creds["password"])
    await page.click(sel.login_button)
