"""
Incident list scraper.

Finds the ``now-list-table`` in the tab (light DOM, then shadow roots, then
same-origin iframes), turns each body row into a :class:`ListRow` and drops
resolved incidents.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from core.interfaces import Tab
from core.models import ListRow

from .selectors import absolute_url, parse_html, same_origin, text_of

logger = logging.getLogger(__name__)

TABLE_SELECTOR = "table.now-list-table"

# Walk open shadow roots looking for the table; returns its outerHTML.
DEEP_TABLE_JS = """
(selector) => {
  const findDeep = (root) => {
    const direct = root.querySelector ? root.querySelector(selector) : null;
    if (direct) return direct;
    const nodes = root.querySelectorAll ? root.querySelectorAll("*") : [];
    for (const el of nodes) {
      if (el.shadowRoot) {
        const found = findDeep(el.shadowRoot);
        if (found) return found;
      }
    }
    return null;
  };
  const table = findDeep(document);
  return table ? table.outerHTML : null;
}
"""


def _cell(row: Any, column_key: str) -> Any:
    return row.select_one(f'.row-cell[data-column-key="{column_key}"]')


def _row_link(row: Any, column_key: str, base_url: str) -> str:
    anchor = row.select_one(f'.row-cell[data-column-key="{column_key}"] a')
    if anchor is None:
        return ""
    return absolute_url(anchor.get("href"), base_url)


def parse_list_table(table: Any, base_url: str) -> List[ListRow]:
    """Turn a parsed ``now-list-table`` into rows, skipping resolved ones."""
    columns = []
    for th in table.select("thead th[data-column-key]"):
        key = th.get("data-column-key") or ""
        label_el = th.select_one(".header-cell-button-label")
        label = text_of(label_el) if label_el is not None else key
        columns.append((key, label))

    rows: List[ListRow] = []
    for tr in table.select("tbody tr.now-list-table-row"):
        record = {label: text_of(_cell(tr, key)) for key, label in columns}
        rows.append(
            ListRow.from_columns(
                record,
                state=text_of(_cell(tr, "state")),
                link_url=_row_link(tr, "number", base_url),
            )
        )

    return [row for row in rows if row.state.lower() != "resolved"]


async def _find_table(frame: Any) -> Optional[Any]:
    html = await frame.content()
    table = parse_html(html).select_one(TABLE_SELECTOR)
    if table is not None:
        return table

    shadow_html = await frame.evaluate(DEEP_TABLE_JS, TABLE_SELECTOR)
    if shadow_html:
        return parse_html(shadow_html).select_one(TABLE_SELECTOR)
    return None


async def scrape_list_rows(tab: Tab) -> List[ListRow]:
    """
    Return the actionable rows of the incident list shown in ``tab``.

    No table in any searched scope gives an empty list, not an error.
    """
    main = tab.main_frame
    frames = [main] + [
        f for f in tab.frames
        if f is not main and same_origin(f.url, main.url)
    ]

    for frame in frames:
        try:
            table = await _find_table(frame)
        except Exception as e:  # noqa: BLE001 - detached / inaccessible frame
            logger.debug(f"Skipping frame {frame.url!r}: {e}")
            continue
        if table is not None:
            rows = parse_list_table(table, main.url)
            logger.info(f"List table found in {frame.url or 'main frame'}: {len(rows)} actionable rows")
            return rows

    logger.info("No incident list table found")
    return []
