"""
Admin portal cross-reference.

Given the application keys of an incident, opens the admin applications
report in a background tab, searches by exactly one identifier over the last
two months and flattens the first result row into ``{header: value}``.

Every failure is returned as an :class:`AdminOutcome` error; only the caller
decides what to do with it.
"""

from __future__ import annotations

import asyncio
import calendar
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from core.config import PortalSettings, TimeoutSettings
from core.infra.waits import wait_for_url_prefix, wait_until, with_timeout
from core.interfaces import ApplicationLookup, Browser, PageExtractor, Tab
from core.models import AdminOutcome, ApplicationKeys

from .selectors import LOCATE_INPUTS_JS, SET_INPUT_VALUE_JS, normalize_text, parse_html, text_of

logger = logging.getLogger(__name__)

NO_KEYS_ERROR = "No admin lookup keys found"
OPEN_TAB_ERROR = "Failed to open admin tab"
SEARCH_DISABLED = "Search disabled"
RESULTS_NOT_FOUND = "Admin results not found"

DATE_FIELD = "date"

# name, placeholder, label (label text is a prefix match)
ADMIN_FIELDS: List[Dict[str, str]] = [
    {"name": DATE_FIELD, "placeholder": "From DD/MM/YYYY", "label": "Request Date"},
    {"name": "application_id", "placeholder": "Enter Application No.", "label": "Application No."},
    {"name": "presale_no", "placeholder": "Enter Presale No", "label": "Presale No."},
    {"name": "emirates_id", "placeholder": "Enter Emirates ID", "label": "Emirates ID No"},
    {"name": "chassis_no", "placeholder": "Enter Chassis No", "label": "Chassis No"},
]
IDENTIFIER_FIELDS = [f["name"] for f in ADMIN_FIELDS if f["name"] != DATE_FIELD]

RESULTS_TABLE = ".table.w-full"
RESULT_ROW = ".table-row.dg_TableRowEven, .table-row.dg_TableRowOdd"

SEARCH_STATE_JS = """
(label) => {
  const normalize = (v) => (v || "").replace(/\\s+/g, " ").trim();
  const input = document.querySelector('input[data-lookup-field="date"]');
  const button = Array.from(document.querySelectorAll("button"))
    .find((btn) => normalize(btn.textContent) === label);
  return {
    dateValue: normalize(input ? input.value : ""),
    hasButton: !!button,
    disabled: button ? !!button.disabled : true,
  };
}
"""

CLICK_SEARCH_JS = """
(label) => {
  const normalize = (v) => (v || "").replace(/\\s+/g, " ").trim();
  const button = Array.from(document.querySelectorAll("button"))
    .find((btn) => normalize(btn.textContent) === label);
  if (!button || button.disabled) return false;
  button.click();
  return true;
}
"""

SEARCH_LABEL = "Search"


def _months_back(day: datetime, months: int) -> datetime:
    month_index = day.month - 1 - months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


def format_date_range(now: Optional[datetime] = None) -> str:
    """``DD/MM/YYYY 00:00 - DD/MM/YYYY 23:59`` covering the last two months."""
    end = now or datetime.now()
    start = _months_back(end, 2)
    return f"{start:%d/%m/%Y} 00:00 - {end:%d/%m/%Y} 23:59"


def choose_search_field(keys: ApplicationKeys) -> Optional[Tuple[str, str]]:
    """The one identifier to search by: application id > presale > Emirates ID > chassis."""
    for name in IDENTIFIER_FIELDS:
        value = getattr(keys, name)
        if value:
            return name, value
    return None


def flatten_results(html: str) -> Optional[Dict[str, str]]:
    """
    Map the header cells of the first ``.table-row`` onto the first data row.

    Returns ``None`` while the results table (with at least one data row) is
    not rendered yet.
    """
    table = parse_html(html).select_one(RESULTS_TABLE)
    if table is None:
        return None
    row = table.select_one(RESULT_ROW)
    if row is None:
        return None

    header_row = table.select_one(".table-row")
    headers = [h for h in (text_of(c) for c in header_row.select(".table-cell")) if h]
    cells = [text_of(c) for c in row.select(".table-cell")]
    return {header: cells[i] if i < len(cells) else "" for i, header in enumerate(headers)}


async def _set_field(tab: Tab, name: str, value: str) -> bool:
    return bool(await tab.evaluate(SET_INPUT_VALUE_JS, [name, value]))


async def _search_state(tab: Tab) -> Dict[str, Any]:
    return await tab.evaluate(SEARCH_STATE_JS, SEARCH_LABEL) or {}


async def run_admin_search(
    tab: Tab,
    keys: ApplicationKeys,
    date_range: str,
    timeouts: Optional[TimeoutSettings] = None,
) -> AdminOutcome:
    """Fill and submit the admin search form in ``tab`` and read the first match."""
    timeouts = timeouts or TimeoutSettings()

    found = await tab.evaluate(LOCATE_INPUTS_JS, ADMIN_FIELDS) or []
    logger.debug(f"Admin form fields located: {found}")

    await _set_field(tab, DATE_FIELD, date_range)
    for name in IDENTIFIER_FIELDS:
        await _set_field(tab, name, "")

    chosen = choose_search_field(keys)
    if chosen is not None:
        await _set_field(tab, *chosen)

    wanted = normalize_text(date_range)

    async def search_ready() -> bool:
        state = await _search_state(tab)
        return state.get("dateValue") == wanted and state.get("hasButton") and not state.get("disabled")

    ready = await wait_until(
        search_ready,
        interval=timeouts.search_ready_interval,
        timeout=timeouts.search_ready_timeout,
    )
    if not ready:
        # One more try with the date before giving up.
        await _set_field(tab, DATE_FIELD, date_range)
        await asyncio.sleep(timeouts.date_retry_delay)
        state = await _search_state(tab)
        if not state.get("hasButton") or state.get("disabled"):
            return AdminOutcome.failure(SEARCH_DISABLED)

    await tab.evaluate(CLICK_SEARCH_JS, SEARCH_LABEL)

    async def results() -> Optional[Dict[str, str]]:
        return flatten_results(await tab.main_frame.content())

    data = await wait_until(
        results,
        interval=timeouts.results_interval,
        timeout=timeouts.results_timeout,
    )
    if data is None:
        return AdminOutcome.failure(RESULTS_NOT_FOUND)
    return AdminOutcome(ok=True, application_data=data)


class AdminLookup(ApplicationLookup):
    """Runs one admin search per incident in a tab it opens and always closes."""

    def __init__(
        self,
        browser: Browser,
        extractor: PageExtractor,
        *,
        portal: Optional[PortalSettings] = None,
        timeouts: Optional[TimeoutSettings] = None,
        clock=datetime.now,
    ) -> None:
        self.browser = browser
        self.portal = portal or PortalSettings()
        self.timeouts = timeouts or TimeoutSettings()
        self.extractor = extractor
        self.clock = clock

    async def lookup(self, keys: ApplicationKeys) -> AdminOutcome:
        if not keys.has_any():
            return AdminOutcome.failure(NO_KEYS_ERROR)

        t = self.timeouts
        try:
            tab = await with_timeout(self.browser.open_tab(), t.open_tab, "Open admin tab")
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Could not open admin tab: {e}")
            return AdminOutcome.failure(OPEN_TAB_ERROR)

        try:
            await with_timeout(
                tab.goto(self.portal.admin_url, timeout=t.admin_page_load),
                t.admin_tab_load,
                "Admin tab load",
            )
            await with_timeout(
                wait_for_url_prefix(
                    tab,
                    self.portal.admin_origin,
                    attempts=t.url_poll_attempts,
                    interval=t.url_poll_interval,
                ),
                t.admin_url_check,
                "Admin URL check",
            )
            await asyncio.sleep(t.admin_settle)

            date_range = format_date_range(self.clock())
            outcome = await with_timeout(
                self.extractor.admin_search(tab, keys, date_range), t.admin_scrape, "Admin scrape"
            )
            if not outcome.ok and not outcome.error:
                return AdminOutcome.failure("Admin scrape failed")
            return outcome
        except Exception as e:  # noqa: BLE001 - browser errors become data
            logger.warning(f"Admin lookup failed: {e}")
            return AdminOutcome.failure(str(e) or type(e).__name__)
        finally:
            try:
                await tab.close()
            except Exception as e:  # noqa: BLE001
                logger.debug(f"Admin tab close failed: {e}")
