"""
Attachment fetcher.

Downloads the files linked from an incident's activity stream with the
browser session's cookies, so the ticketing portal sees the operator's login.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import List, Optional

from core.errors import ScrapeError
from core.infra.http import HttpClient
from core.infra.waits import fixed_delay
from core.interfaces import AttachmentCollector, Browser
from core.models import AttachmentRef, AttachmentResult, Detail

logger = logging.getLogger(__name__)

# Multiple of 3 so the per-chunk encodings concatenate without padding.
B64_CHUNK_SIZE = 3 * 0x2000


def encode_base64(data: bytes, chunk_size: int = B64_CHUNK_SIZE) -> str:
    if chunk_size % 3:
        raise ValueError("chunk_size must be a multiple of 3")
    return "".join(
        base64.b64encode(data[i:i + chunk_size]).decode("ascii")
        for i in range(0, len(data), chunk_size)
    )


class AttachmentFetcher(AttachmentCollector):
    """
    Fetch attachments referenced by a :class:`Detail`.

    Network and HTTP errors are retried with a fixed delay; a payload over
    ``max_bytes`` fails at once and is never kept.
    """

    def __init__(
        self,
        browser: Browser,
        *,
        client: Optional[HttpClient] = None,
        max_bytes: int = 8 * 1024 * 1024,
        retries: int = 2,
        retry_delay: float = 0.3,
        timeout: float = 60.0,
    ) -> None:
        self.browser = browser
        self.max_bytes = max_bytes
        self.client = client or HttpClient(
            timeout=timeout,
            max_retries=retries + 1,
            backoff=fixed_delay(retry_delay),
            retry_for_status=None,
        )

    @classmethod
    def from_settings(cls, browser: Browser, cfg) -> "AttachmentFetcher":
        return cls(
            browser,
            max_bytes=cfg.max_bytes,
            retries=cfg.retries,
            retry_delay=cfg.retry_delay,
            timeout=cfg.timeout,
        )

    async def close(self) -> None:
        await self.client.close()

    async def fetch(self, ref: AttachmentRef) -> AttachmentResult:
        """Download one attachment; raises on failure."""
        if not ref.href:
            raise ScrapeError("Missing attachment URL")

        headers = {}
        cookie = await self.browser.cookie_header(ref.href)
        if cookie:
            headers["Cookie"] = cookie

        body, content_type = await self.client.get_payload(
            ref.href, max_bytes=self.max_bytes, headers=headers
        )
        logger.debug(f"Fetched attachment {ref.file_name!r} ({len(body)} bytes)")
        return AttachmentResult(
            file_name=ref.file_name,
            url=ref.href,
            content_type=content_type,
            size_bytes=len(body),
            base64=encode_base64(body),
        )

    async def collect(self, detail: Optional[Detail]) -> List[AttachmentResult]:
        """
        Fetch every attachment of ``detail`` concurrently.

        Each failure becomes an error record; the order follows the activity
        stream.
        """
        if detail is None:
            return []
        refs = [e.attachment for e in detail.activity if e.attachment and e.attachment.href]
        if not refs:
            return []

        outcomes = await asyncio.gather(*(self.fetch(ref) for ref in refs), return_exceptions=True)

        results: List[AttachmentResult] = []
        for ref, outcome in zip(refs, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Attachment {ref.file_name or ref.href!r} failed: {outcome}")
                results.append(
                    AttachmentResult(
                        file_name=ref.file_name,
                        url=ref.href,
                        error=str(outcome) or type(outcome).__name__,
                    )
                )
            else:
                results.append(outcome)
        return results
