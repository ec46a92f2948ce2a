"""
Control API over aiohttp.web.

    POST /scrape   {"selectors": {...}}   start a run
    GET  /results                         {"ok", "running", "results"}
    POST /reset                           clear run state and persisted slots
    GET  /events                          websocket stream of run events
"""

import json
import logging
from typing import Set

import aiohttp
from aiohttp import web

from core.interfaces import Sink
from core.models import Event


logger = logging.getLogger(__name__)

ORCHESTRATOR_KEY = web.AppKey("orchestrator", object)
BROADCAST_KEY = web.AppKey("broadcast", object)


class WebSocketBroadcastSink(Sink):
    """Pushes every event to all connected ``/events`` websockets."""

    def __init__(self):
        self.clients: Set[web.WebSocketResponse] = set()

    @property
    def name(self) -> str:
        return "WebSocketBroadcastSink"

    async def handle(self, event: Event) -> None:
        message = event.model_dump_json()
        for ws in list(self.clients):
            if ws.closed:
                self.clients.discard(ws)
                continue
            try:
                await ws.send_str(message)
            except (ConnectionError, RuntimeError) as e:
                logger.debug(f"Dropping websocket client: {e}")
                self.clients.discard(ws)

    async def close(self) -> None:
        for ws in list(self.clients):
            await ws.close()
        self.clients.clear()


async def start_scrape(request: web.Request) -> web.Response:
    selectors = None
    if request.can_read_body:
        try:
            body = await request.json()
        except json.JSONDecodeError:
            return web.json_response({"ok": False, "error": "Invalid JSON body"}, status=400)
        if isinstance(body, dict):
            selectors = body.get("selectors")
        if selectors is not None and not isinstance(selectors, dict):
            return web.json_response({"ok": False, "error": "Invalid JSON body"}, status=400)

    response = request.app[ORCHESTRATOR_KEY].start_scrape(selectors)
    return web.json_response(response, status=200 if response["ok"] else 409)


async def get_results(request: web.Request) -> web.Response:
    return web.json_response(request.app[ORCHESTRATOR_KEY].get_results())


async def reset(request: web.Request) -> web.Response:
    return web.json_response(await request.app[ORCHESTRATOR_KEY].reset())


async def events(request: web.Request) -> web.WebSocketResponse:
    ws = web.WebSocketResponse(heartbeat=30.0)
    await ws.prepare(request)

    broadcast = request.app[BROADCAST_KEY]
    broadcast.clients.add(ws)
    logger.info(f"Event client connected ({len(broadcast.clients)} total)")
    try:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.ERROR:
                logger.error(f"WebSocket error: {ws.exception()}")
                break
    finally:
        broadcast.clients.discard(ws)
        logger.info("Event client disconnected")
    return ws


def create_app(orchestrator) -> web.Application:
    """Build the control app around ``orchestrator`` and register the broadcast sink."""
    app = web.Application()
    broadcast = WebSocketBroadcastSink()
    orchestrator.add_sink(broadcast)
    app[ORCHESTRATOR_KEY] = orchestrator
    app[BROADCAST_KEY] = broadcast

    app.router.add_post("/scrape", start_scrape)
    app.router.add_get("/results", get_results)
    app.router.add_post("/reset", reset)
    app.router.add_get("/events", events)

    async def on_cleanup(app: web.Application) -> None:
        orchestrator.remove_sink(broadcast)
        await broadcast.close()

    app.on_cleanup.append(on_cleanup)
    return app
