"""
Batch reconciliation: Site 1 search, Site 2 status lookups, report.
"""

import logging
import time
from pathlib import Path
from typing import Dict, List, Optional

from playwright.async_api import Page, async_playwright

from core.config import ReconcileSettings

from .models import SearchFilters, Site1Row, Site2Result, Summary
from .report import write_outputs
from .site1 import login_site1, search_site1
from .site2 import login_site2, search_site2
from .summary import build_summary


logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


async def _screenshot(page: Page, directory: Path, name: str) -> None:
    path = directory / f"{name}_{_now_ms()}.png"
    try:
        await page.screenshot(path=str(path), full_page=True)
        logger.info(f"Screenshot saved to {path}")
    except Exception as e:
        logger.warning(f"Screenshot failed: {e}")


def build_summaries(rows: List[Site1Row], site2_results: List[Site2Result]) -> List[Summary]:
    by_id: Dict[str, Site2Result] = {}
    for result in site2_results:
        by_id.setdefault(result.application_id, result)
    return [build_summary(row, by_id.get(row.application_id or "")) for row in rows]


async def run_reconcile(
    filters: SearchFilters,
    settings: ReconcileSettings,
    *,
    env: str = "uat",
    headless: bool = True,
    max_rows: int = 0,
    out_dir: Optional[str] = None,
    site1_url: Optional[str] = None,
    site2_url: Optional[str] = None,
) -> List[Summary]:
    """
    Run one reconciliation and write its outputs.

    A Site 1 failure aborts the run (after a screenshot); Site 2 failures are
    recorded per row and the run continues.
    """
    artifacts = Path(settings.artifacts_dir)
    screenshots = artifacts / "screenshots"
    screenshots.mkdir(parents=True, exist_ok=True)
    user_data_dir = artifacts / "user-data"
    user_data_dir.mkdir(parents=True, exist_ok=True)

    url1 = settings.site1.url_for(env, site1_url)
    url2 = settings.site2.url_for(env, site2_url)
    logger.info(f"Using env {env} with Site1 {url1} and Site2 {url2}")

    errors: List[Dict[str, str]] = []
    site2_results: List[Site2Result] = []

    async with async_playwright() as pw:
        context = await pw.chromium.launch_persistent_context(str(user_data_dir), headless=headless)
        try:
            page1 = await context.new_page()
            try:
                logger.info("Navigating to Site 1")
                await page1.goto(url1, wait_until="domcontentloaded")
                await login_site1(page1, settings.site1)
                site1_rows = await search_site1(page1, filters, settings.site1, settings.labels)
            except Exception as e:
                logger.error(f"Site1 failed: {e}")
                await _screenshot(page1, screenshots, "site1_error")
                raise

            rows = site1_rows[:max_rows] if max_rows > 0 else site1_rows

            page2 = await context.new_page()
            site2_ready = False
            for row in rows:
                if not row.application_id:
                    site2_results.append(Site2Result(application_id="", not_found=True))
                    continue
                try:
                    if not site2_ready:
                        logger.info("Navigating to Site 2")
                        await page2.goto(url2, wait_until="domcontentloaded")
                        await login_site2(page2, settings.site2)
                        site2_ready = True
                    site2_results.append(
                        await search_site2(
                            page2,
                            row.application_id,
                            filters.from_date,
                            filters.to_date,
                            settings.site2,
                            settings.labels,
                        )
                    )
                except Exception as e:
                    logger.error(f"Site2 lookup failed for {row.application_id}: {e}")
                    errors.append({
                        "applicationNo": row.application_no or "",
                        "applicationId": row.application_id or "",
                        "stage": "site2",
                        "message": str(e),
                    })
                    await _screenshot(page2, screenshots, f"site2_error_{row.application_id}")
        finally:
            await context.close()

    summaries = build_summaries(rows, site2_results)
    write_outputs(out_dir or settings.out_dir, site1_rows, site2_results, summaries, errors)
    logger.info("Run complete")
    return summaries
