"""
Client for the summarization service and merge of its output into results.

The service receives ``{"incidents": [...]}`` and answers
``{"summaries": [{"number", "summary", "structured"}]}``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp
from pydantic import ValidationError

from core.errors import HttpStatusError, SummaryError
from core.infra.http import HttpClient
from core.interfaces import Summarizer
from core.models import ResultRow, StructuredSummary

logger = logging.getLogger(__name__)


def unreachable_message(url: str) -> str:
    return (
        f"LLM server unreachable at {url}. "
        "Start the summarization service or update summary.url."
    )


class SummaryClient(Summarizer):
    def __init__(
        self,
        url: str = "http://localhost:8787/summarize",
        *,
        timeout: float = 300.0,
        client: Optional[HttpClient] = None,
    ) -> None:
        self.url = url
        # One attempt: a failed summary is reported, not retried.
        self.client = client or HttpClient(timeout=timeout, max_retries=1)

    @classmethod
    def from_settings(cls, cfg) -> "SummaryClient":
        return cls(cfg.url, timeout=cfg.timeout)

    async def close(self) -> None:
        await self.client.close()

    async def summarize(self, incidents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        POST the incidents and return the ``summaries`` list.

        Raises :class:`SummaryError` with the unreachable hint on connection
        failures and with the response body verbatim on HTTP errors.
        """
        try:
            data = await self.client.post_json(self.url, {"incidents": incidents})
        except HttpStatusError as e:
            raise SummaryError(e.body or str(e)) from e
        except aiohttp.ClientConnectionError as e:
            raise SummaryError(unreachable_message(self.url)) from e
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise SummaryError(str(e) or type(e).__name__) from e

        summaries = data.get("summaries") if isinstance(data, dict) else None
        if not isinstance(summaries, list):
            logger.warning("Summarization response carried no summaries list")
            return []
        logger.info(f"Received {len(summaries)} summaries")
        return summaries


def _structured(value: Any) -> Optional[StructuredSummary]:
    if not value:
        return None
    if not isinstance(value, dict):
        return StructuredSummary(raw=value)
    try:
        return StructuredSummary.model_validate(value)
    except ValidationError:
        return StructuredSummary(raw=value, error="Invalid structured summary")


def merge_summaries(results: List[ResultRow], summaries: List[Dict[str, Any]]) -> List[ResultRow]:
    """
    Attach summaries to the rows with the same incident number.

    Rows without a matching summary are left untouched.  Matching rows get
    ``summary`` (``""`` when absent) and ``summary_structured`` (``None`` when
    absent).
    """
    by_number = {
        item["number"]: item
        for item in summaries or []
        if isinstance(item, dict) and item.get("number")
    }
    for row in results:
        item = by_number.get(row.number)
        if item is None:
            continue
        row.summary = item.get("summary") or ""
        row.summary_structured = _structured(item.get("structured"))
    return results
