"""
Shared pytest fixtures: in-memory stand-ins for the browser.

No test launches a browser or reaches the network; HTTP tests run against
``aiohttp.test_utils.TestServer`` on localhost.
"""

from typing import Any, Callable, Dict, List, Optional

import pytest

from core.config import TimeoutSettings
from core.interfaces import Browser, Tab
from plugins.incidents.admin import CLICK_SEARCH_JS, SEARCH_STATE_JS
from plugins.incidents.selectors import LOCATE_INPUTS_JS, SET_INPUT_VALUE_JS


class FakeFrame:
    """Frame returning canned HTML; ``evaluate`` is answered by ``on_evaluate``."""

    def __init__(
        self,
        html: str = "",
        *,
        url: str = "https://esm.gov.ae/now/incident",
        name: str = "",
        children: Optional[List["FakeFrame"]] = None,
        on_evaluate: Optional[Callable[[str, Any], Any]] = None,
        fail: bool = False,
    ):
        self.html = html
        self.url = url
        self.name = name
        self.child_frames = list(children or [])
        self.on_evaluate = on_evaluate
        self.fail = fail
        self.evaluations: List[Any] = []

    async def content(self) -> str:
        if self.fail:
            raise RuntimeError("Frame was detached")
        return self.html

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        if self.fail:
            raise RuntimeError("Frame was detached")
        self.evaluations.append((expression, arg))
        if self.on_evaluate is None:
            return None
        return self.on_evaluate(expression, arg)


class FakeTab(Tab):
    def __init__(self, main: Optional[FakeFrame] = None, *, extra_frames=None, url: str = ""):
        self._main = main or FakeFrame()
        self._extra = list(extra_frames or [])
        self._url = url or self._main.url
        self.closed = False
        self.visited: List[str] = []
        self.redirect: Optional[str] = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def main_frame(self) -> FakeFrame:
        return self._main

    @property
    def frames(self) -> List[FakeFrame]:
        return [self._main] + self._extra

    async def goto(self, url: str, timeout: float) -> None:
        self.visited.append(url)
        self._url = self.redirect or url
        self._main.url = self._url

    async def close(self) -> None:
        self.closed = True


class FakeBrowser(Browser):
    """Hands out tabs from ``tab_factory`` and records every one it opened."""

    def __init__(self, active: Optional[FakeTab] = None, tab_factory: Optional[Callable[[], FakeTab]] = None):
        self.active = active
        self.tab_factory = tab_factory or FakeTab
        self.opened: List[FakeTab] = []
        self.cookie = "JSESSIONID=abc123"

    async def active_tab(self) -> FakeTab:
        if self.active is None:
            raise RuntimeError("No active tab found")
        return self.active

    async def open_tab(self) -> FakeTab:
        tab = self.tab_factory()
        self.opened.append(tab)
        return tab

    async def cookie_header(self, url: str) -> str:
        return self.cookie


class FakeAdminPage(FakeFrame):
    """Simulates the admin report form: five inputs, a Search button, a results table."""

    RESULTS_HTML = """
    <div class="table w-full">
      <div class="table-row"><div class="table-cell">Application No.</div>
        <div class="table-cell">Status</div><div class="table-cell"></div></div>
      <div class="table-row dg_TableRowEven"><div class="table-cell">A1</div>
        <div class="table-cell">  Approved </div><div class="table-cell">x</div></div>
      <div class="table-row dg_TableRowOdd"><div class="table-cell">A2</div>
        <div class="table-cell">Rejected</div></div>
    </div>
    """

    def __init__(self, *, search_enabled: bool = True, has_results: bool = True, accept_date: bool = True):
        super().__init__(url="https://admin.sharyuae.ae/reports/applications-report")
        self.fields: Dict[str, str] = {
            name: "" for name in ("date", "application_id", "presale_no", "emirates_id", "chassis_no")
        }
        self.search_enabled = search_enabled
        self.has_results = has_results
        self.accept_date = accept_date
        self.clicked = False
        self.on_evaluate = self._dispatch

    async def content(self) -> str:
        if self.clicked and self.has_results:
            return self.RESULTS_HTML
        return "<form></form>"

    def _dispatch(self, expression: str, arg: Any) -> Any:
        if expression == LOCATE_INPUTS_JS:
            return [f["name"] for f in arg if f["name"] in self.fields]
        if expression == SET_INPUT_VALUE_JS:
            name, value = arg
            if name not in self.fields:
                return False
            if name == "date" and not self.accept_date:
                return True
            self.fields[name] = value
            return True
        if expression == SEARCH_STATE_JS:
            return {
                "dateValue": self.fields["date"],
                "hasButton": True,
                "disabled": not self.search_enabled,
            }
        if expression == CLICK_SEARCH_JS:
            if not self.search_enabled:
                return False
            self.clicked = True
            return True
        raise AssertionError(f"Unexpected script: {expression[:40]!r}")


@pytest.fixture
def fast_timeouts() -> TimeoutSettings:
    """Timeouts shrunk so polling tests finish in milliseconds."""
    return TimeoutSettings(
        open_tab=1,
        page_load=1,
        tab_load=1,
        url_check=1,
        url_poll_interval=0.01,
        url_poll_attempts=5,
        detail_settle=0,
        detail_scrape=1,
        detail_container_wait=0.05,
        detail_poll_interval=0.01,
        admin_page_load=1,
        admin_tab_load=1,
        admin_url_check=1,
        admin_settle=0,
        admin_scrape=2,
        search_ready_interval=0.01,
        search_ready_timeout=0.05,
        date_retry_delay=0,
        results_interval=0.01,
        results_timeout=0.05,
        row=5,
        stale_run=120,
        list_read_attempts=2,
        list_read_delay=0,
    )
