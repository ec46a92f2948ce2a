"""
Run orchestrator for the incident scrape.

One :class:`RunOrchestrator` owns one :class:`~core.models.RunState`.  A run
walks the incident list strictly row by row: detail tab, attachments, key
extraction and admin lookup all finish (tabs closed) before the next row
starts.  Per-row failures are recorded on the row; only failures outside the
row loop abort the run.

Portal-specific collaborators (extractor, attachment collector, admin
lookup, summarizer, key extractor) are injected by the caller.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Union

from .config import PortalSettings, TimeoutSettings
from .errors import RunAlreadyActive, SummaryError
from .infra.waits import fixed_delay, retry, wait_for_url_prefix, with_timeout
from .interfaces import ApplicationLookup, AttachmentCollector, Browser, PageExtractor, Sink, Summarizer
from .models import (
    ApplicationKeys,
    Detail,
    DetailOutcome,
    DetailSelectors,
    Event,
    ListRow,
    ResultRow,
    RunState,
)


logger = logging.getLogger(__name__)

MISSING_LINK_ERROR = "Missing link URL"
OPEN_DETAIL_TAB_ERROR = "Failed to open detail tab"
ROW_TIMEOUT_ERROR = "Row processing timeout"

KeyExtractor = Callable[[Detail], ApplicationKeys]
SummaryMerger = Callable[[List[ResultRow], List[Dict[str, Any]]], Any]


def is_stale(state: RunState, now: float, window: float) -> bool:
    """A running run older than ``window`` seconds is presumed dead."""
    return state.running and now - state.started_at >= window


class RunOrchestrator:
    """Start / query / reset scrapes and run them on the current event loop."""

    def __init__(
        self,
        browser: Browser,
        extractor: PageExtractor,
        *,
        attachments: AttachmentCollector,
        admin: ApplicationLookup,
        key_extractor: KeyExtractor,
        summarizer: Optional[Summarizer] = None,
        summary_merger: Optional[SummaryMerger] = None,
        store: Any = None,
        exporter: Any = None,
        sinks: Optional[List[Sink]] = None,
        timeouts: Optional[TimeoutSettings] = None,
        portal: Optional[PortalSettings] = None,
        default_selectors: Optional[DetailSelectors] = None,
        clock: Callable[[], float] = time.time,
    ):
        if summarizer is not None and summary_merger is None:
            raise ValueError("summary_merger is required when a summarizer is set")
        self.browser = browser
        self.extractor = extractor
        self.attachments = attachments
        self.admin = admin
        self.key_extractor = key_extractor
        self.summarizer = summarizer
        self.summary_merger = summary_merger
        self.store = store
        self.exporter = exporter
        self.sinks: List[Sink] = list(sinks or [])
        self.timeouts = timeouts or TimeoutSettings()
        self.portal = portal or PortalSettings()
        self.default_selectors = default_selectors or DetailSelectors()
        self.clock = clock

        self.state = RunState()
        self._task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------ #
    # Events
    def add_sink(self, sink: Sink) -> None:
        self.sinks.append(sink)

    def remove_sink(self, sink: Sink) -> None:
        if sink in self.sinks:
            self.sinks.remove(sink)

    async def emit(self, kind: str, message: str = "", *, level: str = "INFO", **data: Any) -> None:
        event = Event(kind=kind, level=level, message=message, data=data)
        for sink in list(self.sinks):
            try:
                await sink.handle(event)
            except Exception as e:
                logger.error(f"Sink {sink.name} failed: {e}")

    # ------------------------------------------------------------------ #
    # Commands
    def start_scrape(
        self,
        selectors: Union[DetailSelectors, Dict[str, Any], None] = None,
    ) -> Dict[str, Any]:
        """
        Start a run in the background.

        Returns ``{"ok": True}``, or ``{"ok": False, "error": ...}`` when a
        run is already active and not stale.
        """
        resolved = self._resolve_selectors(selectors)
        now = self.clock()
        if self.state.running:
            if not is_stale(self.state, now, self.timeouts.stale_run):
                return {"ok": False, "error": str(RunAlreadyActive())}
            logger.warning(
                f"Previous run started {now - self.state.started_at:.0f}s ago looks stale; resetting"
            )
            self._cancel_task()
            self.state = RunState()

        self.state = RunState(running=True, started_at=now)
        self._task = asyncio.create_task(self.run_scrape(self.state, resolved))
        return {"ok": True}

    async def wait(self) -> None:
        """Wait for the background run (if any) to finish."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    def get_results(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "running": self.state.running,
            "results": [row.to_record() for row in self.state.results],
        }

    async def reset(self) -> Dict[str, Any]:
        self._cancel_task()
        self.state = RunState()
        if self.store is not None:
            await self.store.clear()
        return {"ok": True}

    async def close(self) -> None:
        self._cancel_task()
        for resource in (self.attachments, self.summarizer):
            close = getattr(resource, "close", None)
            if close is not None:
                await close()
        for sink in self.sinks:
            await sink.close()

    def _cancel_task(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _resolve_selectors(
        self, selectors: Union[DetailSelectors, Dict[str, Any], None]
    ) -> DetailSelectors:
        if selectors is None:
            return self.default_selectors
        if isinstance(selectors, DetailSelectors):
            return selectors
        if not isinstance(selectors, dict):
            raise TypeError(f"selectors must be a mapping, got {type(selectors).__name__}")
        # Accept both camelCase (wire) and snake_case keys.
        merged = self.default_selectors.model_dump()
        for name, field in DetailSelectors.model_fields.items():
            value = selectors.get(field.alias or name) or selectors.get(name)
            if value:
                merged[name] = value
        return DetailSelectors(**merged)

    # ------------------------------------------------------------------ #
    # Run
    async def run_scrape(self, state: RunState, selectors: DetailSelectors) -> None:
        t = self.timeouts
        try:
            tab = await self.browser.active_tab()
            rows = await retry(
                lambda: self.extractor.list_rows(tab),
                attempts=t.list_read_attempts,
                delay=fixed_delay(t.list_read_delay),
                label="List read",
            )
            total = len(rows)
            logger.info(f"Scraping {total} incidents")
            await self.emit("progress", f"0/{total}", current=0, total=total)

            for i, row in enumerate(rows, start=1):
                await self.emit(
                    "progress", f"{i}/{total} {row.number}",
                    current=i, total=total, currentNumber=row.number,
                )
                state.results.append(await self.process_row(row, selectors))

            state.running = False
            records = [row.to_record() for row in state.results]
            if self.store is not None:
                await self.store.save_results(state.results)
            await self.emit("done", f"Scrape finished: {total} incidents", results=records)
            if self.exporter is not None:
                self.exporter.export(records)

            await self._summarize(state, records)
        except asyncio.CancelledError:
            logger.info("Scrape cancelled")
            raise
        except Exception as e:
            state.running = False
            logger.exception(f"Scrape failed: {e}")
            await self.emit("error", str(e), level="ERROR", error=str(e))

    async def process_row(self, row: ListRow, selectors: Optional[DetailSelectors] = None) -> ResultRow:
        """Run the per-row pipeline; never raises."""
        result = ResultRow.from_list_row(row)
        if not row.link_url:
            result.detail_error = MISSING_LINK_ERROR
            return result

        stage = {"name": "detail"}
        try:
            await asyncio.wait_for(
                self._row_pipeline(row, result, selectors or self.default_selectors, stage),
                timeout=self.timeouts.row,
            )
        except asyncio.TimeoutError:
            logger.warning(f"{row.number}: row timed out during {stage['name']}")
            if stage["name"] == "detail":
                result.detail = None
                result.detail_error = ROW_TIMEOUT_ERROR
            else:
                result.application_error = ROW_TIMEOUT_ERROR
        except Exception as e:
            logger.warning(f"{row.number}: row failed during {stage['name']}: {e}")
            if stage["name"] == "detail":
                result.detail_error = str(e)
            else:
                result.application_error = str(e)
        return result

    async def _row_pipeline(
        self,
        row: ListRow,
        result: ResultRow,
        selectors: DetailSelectors,
        stage: Dict[str, str],
    ) -> None:
        outcome = await self.scrape_detail(row.link_url, selectors)
        if not outcome.ok:
            result.detail_error = outcome.error
            logger.warning(f"{row.number}: {outcome.error}")
            return
        result.detail = outcome.detail

        stage["name"] = "attachments"
        fetched = await self.attachments.collect(outcome.detail)
        ok = [r for r in fetched if r.ok]
        failed = [r for r in fetched if not r.ok]
        if ok:
            result.attachments = ok
        if failed:
            result.attachment_errors = failed

        stage["name"] = "admin"
        keys = self.key_extractor(outcome.detail)
        result.application_keys = keys
        admin = await self.admin.lookup(keys)
        if admin.ok:
            result.application_data = admin.application_data
        else:
            result.application_error = admin.error
            logger.warning(f"{row.number}: {admin.error}")

    async def scrape_detail(self, url: str, selectors: DetailSelectors) -> DetailOutcome:
        """Open ``url`` in its own tab, scrape the activity stream, close the tab."""
        t = self.timeouts
        try:
            tab = await with_timeout(self.browser.open_tab(), t.open_tab, "Open tab")
        except Exception as e:
            logger.warning(f"Could not open detail tab: {e}")
            return DetailOutcome.failure(OPEN_DETAIL_TAB_ERROR)

        try:
            await with_timeout(tab.goto(url, timeout=t.page_load), t.tab_load, "Tab load")
            await with_timeout(
                wait_for_url_prefix(
                    tab,
                    self.portal.ticket_origin,
                    attempts=t.url_poll_attempts,
                    interval=t.url_poll_interval,
                ),
                t.url_check,
                "URL check",
            )
            await asyncio.sleep(t.detail_settle)
            outcome = await with_timeout(
                self.extractor.detail(tab, selectors), t.detail_scrape, "Detail scrape"
            )
            if not outcome.ok:
                return DetailOutcome.failure(outcome.error or "Detail scrape failed")
            return outcome
        except Exception as e:
            return DetailOutcome.failure(str(e) or type(e).__name__)
        finally:
            try:
                await tab.close()
            except Exception as e:
                logger.debug(f"Detail tab close failed: {e}")

    async def _summarize(self, state: RunState, records: List[Dict[str, Any]]) -> None:
        if self.summarizer is None:
            return
        try:
            summaries = await self.summarizer.summarize(records)
        except SummaryError as e:
            logger.warning(f"Summarization failed: {e}")
            await self.emit("summaries_error", str(e), level="WARNING", error=str(e))
            return

        self.summary_merger(state.results, summaries)
        merged = [row.to_record() for row in state.results]
        if self.store is not None:
            await self.store.save_results(state.results)
            await self.store.save_summaries(summaries)
        await self.emit(
            "summaries_done",
            f"{len(summaries)} summaries merged",
            summaries=summaries,
            incidents=merged,
        )
