"""
Site 1: search form and results table of the sales portal.
"""

import logging
import re
from typing import Iterable, List

from playwright.async_api import Page

from core.config import SiteLabels, SiteSettings
from plugins.incidents.selectors import normalize_text

from .models import SearchFilters, Site1Row
from .pages import by_label, login, safe_click, safe_fill, wait_for_table


logger = logging.getLogger(__name__)

_ROW_ID = re.compile(r"^row-(\d+)-column-")

# Site1Row field -> data-testid column key
SITE1_COLUMNS = {
    "application_time": "application-time",
    "application_no": "application-no",
    "presale_no": "presale-no",
    "seller_emirates_id": "seller-emirates-id",
    "seller_traffic_file_number": "seller-traffic-file-number",
    "seller_name": "seller-name",
    "buyer_emirates_id": "buyer-emirates-id",
    "buyer_traffic_file_number": "buyer-traffic-file-number",
    "buyer_name": "buyer-name",
    "chassis_no": "chassis-no",
    "vehicle_make": "vehicle-make",
    "vehicle_model": "vehicle-model",
    "manufacture_year": "manufacture-year",
    "with_plates": "with-plates",
    "with_renewal": "with-renewal",
    "sale_amount": "sale-amount",
    "site1_status": "status",
    "application_id": "application-id",
}


def parse_row_ids(test_ids: Iterable[str]) -> List[str]:
    """Distinct row ids found in ``row-<n>-column-...`` test ids, in numeric order."""
    ids = set()
    for test_id in test_ids:
        match = _ROW_ID.match(test_id or "")
        if match:
            ids.add(match.group(1))
    return sorted(ids, key=int)


def row_from_cells(cells: dict) -> Site1Row:
    """Build a row from ``{column key: text}``; an empty application id becomes ``None``."""
    values = {field: normalize_text(cells.get(key, "")) for field, key in SITE1_COLUMNS.items()}
    values["application_id"] = values["application_id"] or None
    return Site1Row(**values)


async def login_site1(page: Page, site: SiteSettings) -> None:
    await login(page, site, "Site1")


async def search_site1(
    page: Page,
    filters: SearchFilters,
    site: SiteSettings,
    labels: SiteLabels,
) -> List[Site1Row]:
    logger.info("Site1: filling search form")

    await safe_fill(by_label(page, labels.date_from), filters.from_date, what=labels.date_from)
    await safe_fill(by_label(page, labels.date_to), filters.to_date, what=labels.date_to)

    optional = [
        (filters.application_no, labels.application_no),
        (filters.presale_no, labels.presale_no),
        (filters.emirates_id, labels.emirates_id),
        (filters.traffic_no, labels.traffic_no),
        (filters.chassis_no, labels.chassis_no),
        (filters.status, labels.status),
    ]
    for value, label in optional:
        if value:
            await safe_fill(by_label(page, label), value, what=label)

    await safe_click(page.locator(site.selectors.search_button), what="Search button")
    await wait_for_table(page, site)

    logger.info("Site1: scraping results table")
    test_ids = await page.locator(site.selectors.cell_pattern).evaluate_all(
        "(els) => els.map((el) => el.getAttribute('data-testid') || '')"
    )

    rows: List[Site1Row] = []
    for row_id in parse_row_ids(test_ids):
        cells = {}
        for key in SITE1_COLUMNS.values():
            locator = page.locator(f'[data-testid="row-{row_id}-column-{key}-content"]')
            if await locator.count() == 0:
                cells[key] = ""
                continue
            cells[key] = await locator.first.text_content() or ""
        rows.append(row_from_cells(cells))

    logger.info(f"Site1: {len(rows)} rows")
    return rows
