"""
Builds a :class:`~core.orchestrator.RunOrchestrator` wired with this
plugin's extractor, attachment fetcher, admin lookup and summarizer.
"""

from __future__ import annotations

from typing import Any, List, Optional

from core.config import Settings
from core.interfaces import Browser, Sink
from core.orchestrator import RunOrchestrator

from .admin import AdminLookup
from .attachments import AttachmentFetcher
from .extractor import PortalExtractor
from .keys import extract_keys
from .sinks import JsonExporter
from .summarizer import SummaryClient, merge_summaries


def build_orchestrator(
    settings: Settings,
    browser: Browser,
    *,
    sinks: Optional[List[Sink]] = None,
    store: Any = None,
) -> RunOrchestrator:
    extractor = PortalExtractor(settings.timeouts, settings.detail_selectors)
    summarizer = SummaryClient.from_settings(settings.summary) if settings.summary.enabled else None
    return RunOrchestrator(
        browser,
        extractor,
        attachments=AttachmentFetcher.from_settings(browser, settings.attachments),
        admin=AdminLookup(browser, extractor, portal=settings.portal, timeouts=settings.timeouts),
        key_extractor=extract_keys,
        summarizer=summarizer,
        summary_merger=merge_summaries,
        store=store,
        exporter=JsonExporter(settings.storage.export_dir, settings.storage.export_file),
        sinks=sinks,
        timeouts=settings.timeouts,
        portal=settings.portal,
        default_selectors=settings.detail_selectors,
    )
