"""
Site 2: status lookup by application id.
"""

import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from core.config import SiteLabels, SiteSettings
from plugins.incidents.selectors import normalize_text

from .models import Site2Result
from .pages import by_label, login, safe_click, safe_fill, wait_for_table


logger = logging.getLogger(__name__)

FORCE_VALUE_JS = """
({ selector, value }) => {
  const el = document.querySelector(selector);
  if (!el) return false;
  el.removeAttribute("readonly");
  el.value = value;
  el.dispatchEvent(new Event("input", { bubbles: true }));
  el.dispatchEvent(new Event("change", { bubbles: true }));
  return true;
}
"""


async def login_site2(page: Page, site: SiteSettings) -> None:
    await login(page, site, "Site2")


async def set_date_range(
    page: Page,
    from_date: str,
    to_date: str,
    site: SiteSettings,
    labels: SiteLabels,
) -> None:
    """Fill the range input; force the value when it is readonly."""
    value = f"{from_date} - {to_date}"
    selector = site.selectors.date_range_input
    locator = page.locator(selector)

    if await locator.count() == 0:
        logger.warning("Site2: date range input not found by selector; trying label lookup")
        await safe_fill(by_label(page, labels.request_date), value, what=labels.request_date)
        return

    try:
        await locator.first.fill(value)
    except PlaywrightError:
        logger.warning("Site2: date range input is readonly; forcing value")
        await page.evaluate(FORCE_VALUE_JS, {"selector": selector, "value": value})


async def search_site2(
    page: Page,
    application_id: str,
    from_date: str,
    to_date: str,
    site: SiteSettings,
    labels: SiteLabels,
) -> Site2Result:
    logger.info(f"Site2: searching ApplicationId {application_id}")

    await set_date_range(page, from_date, to_date, site, labels)
    await safe_fill(by_label(page, labels.application_id), application_id, what=labels.application_id)
    await safe_click(page.locator(site.selectors.search_button), what="Search button")
    await wait_for_table(page, site, require_row=False)

    if await page.locator(site.selectors.table_row).count() == 0:
        return Site2Result(application_id=application_id, not_found=True)

    status = normalize_text(await page.locator(site.selectors.status_cell).first.text_content())
    return Site2Result(application_id=application_id, site2_status=status, raw={"status": status})
