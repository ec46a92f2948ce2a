from conftest import FakeFrame, FakeTab
from plugins.incidents.list_scraper import DEEP_TABLE_JS, parse_list_table, scrape_list_rows
from plugins.incidents.selectors import absolute_url, normalize_text, parse_html


def _row(number: str, state: str, href: str = "/incident.do?sys_id=1") -> str:
    return f"""
    <tr class="now-list-table-row">
      <td class="row-cell" data-column-key="number"><a href="{href}">{number}</a></td>
      <td class="row-cell" data-column-key="state">  {state} </td>
      <td class="row-cell" data-column-key="short_description">Payment   failed</td>
    </tr>"""


def _table(*rows: str) -> str:
    return f"""
    <table class="now-list-table">
      <thead><tr>
        <th data-column-key="number"><span class="header-cell-button-label">Number</span></th>
        <th data-column-key="state"><span class="header-cell-button-label">State</span></th>
        <th data-column-key="short_description"></th>
      </tr></thead>
      <tbody>{''.join(rows)}</tbody>
    </table>"""


def test_normalize_text():
    assert normalize_text("  a \n\t b  ") == "a b"
    assert normalize_text(None) == ""


def test_absolute_url_resolves_against_origin():
    assert absolute_url("/x.do?a=1", "https://esm.gov.ae/now/list") == "https://esm.gov.ae/x.do?a=1"
    assert absolute_url("https://other/x", "https://esm.gov.ae/") == "https://other/x"
    assert absolute_url("", "https://esm.gov.ae/") == ""


def test_resolved_rows_are_dropped_case_insensitively():
    html = _table(_row("INC1", "New"), _row("INC2", "Resolved"), _row("INC3", "resolved"))
    table = parse_html(html).select_one("table.now-list-table")

    rows = parse_list_table(table, "https://esm.gov.ae/now/list")

    assert [r.number for r in rows] == ["INC1"]
    row = rows[0]
    assert row.state == "New"
    assert row.link_url == "https://esm.gov.ae/incident.do?sys_id=1"
    assert row.columns == {"Number": "INC1", "State": "New", "short_description": "Payment failed"}


async def test_table_found_in_same_origin_iframe():
    main = FakeFrame("<html><body>no table</body></html>", url="https://esm.gov.ae/now/list")
    foreign = FakeFrame(_table(_row("INC9", "New")), url="https://evil.example/")
    inner = FakeFrame(_table(_row("INC7", "In Progress")), url="https://esm.gov.ae/frame")
    tab = FakeTab(main, extra_frames=[foreign, inner])

    rows = await scrape_list_rows(tab)

    assert [r.number for r in rows] == ["INC7"]


async def test_table_found_through_shadow_roots():
    def on_evaluate(expression, arg):
        assert expression == DEEP_TABLE_JS
        return _table(_row("INC5", "New"))

    tab = FakeTab(FakeFrame("<div></div>", on_evaluate=on_evaluate))

    rows = await scrape_list_rows(tab)

    assert [r.number for r in rows] == ["INC5"]


async def test_no_table_anywhere_gives_empty_list():
    broken = FakeFrame(url="https://esm.gov.ae/x", fail=True)
    tab = FakeTab(FakeFrame("<p></p>"), extra_frames=[broken])

    assert await scrape_list_rows(tab) == []
