"""
Incident detail scraper.

Reads the activity stream (``#sn_form_inline_stream_entries`` by default) of
an incident page.  The container may live in the frame's own document, in the
classic ``gsft_main`` iframe or in another same-origin child frame.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from core.infra.waits import wait_until
from core.interfaces import Frame, Tab
from core.models import (
    ActivityEntry,
    ActivityRecord,
    AttachmentRef,
    Detail,
    DetailOutcome,
    DetailSelectors,
)

from .selectors import absolute_url, parse_html, same_origin, text_of

logger = logging.getLogger(__name__)

CONTAINER_NOT_FOUND = "Detail container not found"
NOT_FOUND_IN_FRAMES = "Detail not found in frames"


def _parse_entry(entry: Any, selectors: DetailSelectors, base_url: str) -> ActivityEntry:
    time_wrap = entry.select_one(selectors.time_wrap)
    type_el = time_wrap.find("span") if time_wrap is not None else None

    records = []
    for li in entry.select(selectors.record_row):
        cells = li.select(selectors.record_cell)
        records.append(
            ActivityRecord(
                key=text_of(cells[0]) if len(cells) > 0 else "",
                value=text_of(cells[1]) if len(cells) > 1 else "",
            )
        )

    attachment = None
    link = entry.select_one(selectors.attachment_link)
    if link is not None:
        attachment = AttachmentRef(
            href=absolute_url(link.get("href") or "", base_url),
            file_name=link.get("file-name") or "",
            size=link.get("size") or "",
        )

    return ActivityEntry(
        type=text_of(type_el),
        time=text_of(entry.select_one(selectors.time)),
        by=text_of(entry.select_one(selectors.created_by)),
        text=text_of(entry.select_one(selectors.body)),
        records=records,
        attachment=attachment,
    )


def parse_detail(container: Any, selectors: DetailSelectors, base_url: str) -> Detail:
    """Build a :class:`Detail` from a parsed activity container."""
    return Detail(
        activity=[_parse_entry(li, selectors, base_url) for li in container.select(selectors.entry)]
    )


async def _container_in(frame: Frame, selectors: DetailSelectors) -> Optional[Any]:
    return parse_html(await frame.content()).select_one(selectors.main_container)


async def extract_in_frame(frame: Frame, selectors: DetailSelectors) -> DetailOutcome:
    """
    Look for the container in ``frame``, then in its ``gsft_main`` child, then
    in its other same-origin children.
    """
    container = await _container_in(frame, selectors)
    if container is None:
        children = list(frame.child_frames or [])
        ordered = [c for c in children if c.name == "gsft_main"]
        ordered += [c for c in children if c.name != "gsft_main" and same_origin(c.url, frame.url)]
        for child in ordered:
            try:
                container = await _container_in(child, selectors)
            except Exception as e:  # noqa: BLE001 - cross-origin / detached frame
                logger.debug(f"Child frame {child.url!r} unreadable: {e}")
                continue
            if container is not None:
                break

    if container is None:
        return DetailOutcome.failure(CONTAINER_NOT_FOUND)
    return DetailOutcome.success(parse_detail(container, selectors, frame.url))


async def scrape_detail(
    tab: Tab,
    selectors: Optional[DetailSelectors] = None,
    *,
    poll_interval: float = 0.5,
    wait_timeout: float = 8.0,
) -> DetailOutcome:
    """
    Scrape the activity stream of the incident shown in ``tab``.

    The top frame is polled until the container shows up or ``wait_timeout``
    passes; then every frame of the tab is tried once.  The first success
    wins, otherwise the first frame error is reported.
    """
    selectors = selectors or DetailSelectors()

    async def top_frame() -> Optional[DetailOutcome]:
        try:
            outcome = await extract_in_frame(tab.main_frame, selectors)
        except Exception as e:  # noqa: BLE001
            logger.debug(f"Top frame not readable yet: {e}")
            return None
        return outcome if outcome.ok else None

    outcome = await wait_until(top_frame, interval=poll_interval, timeout=wait_timeout)
    if outcome is not None:
        return outcome

    errors: List[str] = []
    for frame in tab.frames:
        try:
            outcome = await extract_in_frame(frame, selectors)
        except Exception as e:  # noqa: BLE001
            logger.debug(f"Skipping frame {frame.url!r}: {e}")
            continue
        if outcome.ok:
            logger.debug(f"Detail found in frame {frame.url!r}")
            return outcome
        if outcome.error:
            errors.append(outcome.error)

    return DetailOutcome.failure(errors[0] if errors else NOT_FOUND_IN_FRAMES)
