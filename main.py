"""
Main entry point for the incident scraping platform.

    python main.py scrape [--selectors '{"mainContainer": "..."}']
    python main.py serve
    python main.py results
    python main.py reset
"""

import argparse
import asyncio
import json
import logging
import os
import sys

# Add project root to PYTHONPATH so imports work when running this script directly
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from aiohttp import web

from core.config import Settings, load_settings
from core.infra.control import create_app
from core.infra.sel import PlaywrightClient
from plugins.incidents.sinks import LogSink, ResultStore
from plugins.incidents.wiring import build_orchestrator


LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


async def run_scrape(settings: Settings, selectors) -> int:
    store = ResultStore.open(settings.storage.db_path)
    async with PlaywrightClient.from_settings(settings.browser, settings.portal) as browser:
        orchestrator = build_orchestrator(settings, browser, sinks=[LogSink("incidents.events")], store=store)
        try:
            response = orchestrator.start_scrape(selectors)
            if not response["ok"]:
                logger.error(response["error"])
                return 1
            await orchestrator.wait()
            results = orchestrator.get_results()["results"]
            logger.info(f"Scrape complete: {len(results)} incidents")
        finally:
            await orchestrator.close()
            await store.close()
    return 0


async def serve(settings: Settings) -> int:
    store = ResultStore.open(settings.storage.db_path)
    browser = PlaywrightClient.from_settings(settings.browser, settings.portal)
    await browser.start()
    orchestrator = build_orchestrator(settings, browser, sinks=[LogSink("incidents.events")], store=store)

    runner = web.AppRunner(create_app(orchestrator))
    await runner.setup()
    site = web.TCPSite(runner, settings.control.host, settings.control.port)
    await site.start()
    logger.info(f"Control API listening on http://{settings.control.host}:{settings.control.port}")

    try:
        await asyncio.Event().wait()
    finally:
        logger.info("Shutting down...")
        await runner.cleanup()
        await orchestrator.close()
        await browser.stop()
        await store.close()
        logger.info("Shutdown complete")
    return 0


async def show_results(settings: Settings) -> int:
    store = ResultStore.open(settings.storage.db_path)
    try:
        print(json.dumps(await store.load_results(), indent=2, ensure_ascii=False))
    finally:
        await store.close()
    return 0


async def reset(settings: Settings) -> int:
    store = ResultStore.open(settings.storage.db_path)
    try:
        await store.clear()
    finally:
        await store.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Incident scraping platform")
    parser.add_argument("--config", help="Path to config.yaml (default: $INCIDENTS_CONFIG or config.yaml)")
    sub = parser.add_subparsers(dest="command", required=True)

    scrape = sub.add_parser("scrape", help="Run one scrape in the foreground")
    scrape.add_argument("--selectors", type=json.loads, help="JSON object of detail selector overrides")
    sub.add_parser("serve", help="Start the control API")
    sub.add_parser("results", help="Print the persisted results")
    sub.add_parser("reset", help="Clear persisted results and summaries")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(args.config)
    setup_logging(settings.log_level)

    if args.command == "scrape":
        return asyncio.run(run_scrape(settings, args.selectors))
    if args.command == "serve":
        try:
            return asyncio.run(serve(settings))
        except KeyboardInterrupt:
            return 0
    if args.command == "results":
        return asyncio.run(show_results(settings))
    return asyncio.run(reset(settings))


if __name__ == "__main__":
    sys.exit(main())
