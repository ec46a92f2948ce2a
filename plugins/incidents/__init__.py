"""
Incident plugin: scrapes the ticketing portal's incident list and details,
fetches attachments, resolves application keys and cross-references them in
the admin portal.

This plugin provides:
- List and detail scrapers behind :class:`PortalExtractor`
- Attachment fetcher and admin lookup
- Summarization client, result store and JSON export
- :func:`build_orchestrator` wiring the above into a run orchestrator
"""

from .admin import AdminLookup
from .attachments import AttachmentFetcher
from .extractor import PortalExtractor
from .keys import extract_keys
from .sinks import JsonExporter, LogSink, ResultStore, import_results
from .summarizer import SummaryClient, SummaryError, merge_summaries
from .wiring import build_orchestrator

__all__ = [
    "AdminLookup",
    "AttachmentFetcher",
    "PortalExtractor",
    "extract_keys",
    "JsonExporter",
    "LogSink",
    "ResultStore",
    "import_results",
    "SummaryClient",
    "SummaryError",
    "merge_summaries",
    "build_orchestrator",
]
