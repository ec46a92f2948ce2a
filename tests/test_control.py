import asyncio
import json

import pytest
from aiohttp.test_utils import TestClient, TestServer

from core.infra.control import BROADCAST_KEY, create_app
from core.models import Event


class FakeOrchestrator:
    def __init__(self):
        self.sinks = []
        self.running = False
        self.started_with = []
        self.resets = 0

    def add_sink(self, sink):
        self.sinks.append(sink)

    def remove_sink(self, sink):
        self.sinks.remove(sink)

    def start_scrape(self, selectors=None):
        if self.running:
            return {"ok": False, "error": "Scrape already running"}
        self.running = True
        self.started_with.append(selectors)
        return {"ok": True}

    def get_results(self):
        return {"ok": True, "running": self.running, "results": [{"Number": "INC1"}]}

    async def reset(self):
        self.resets += 1
        self.running = False
        return {"ok": True}


@pytest.fixture
async def control():
    orchestrator = FakeOrchestrator()
    app = create_app(orchestrator)
    client = TestClient(TestServer(app))
    await client.start_server()
    yield client, orchestrator, app
    await client.close()


async def test_start_then_conflict(control):
    client, orchestrator, _ = control

    resp = await client.post("/scrape", json={"selectors": {"mainContainer": ".x"}})
    assert resp.status == 200
    assert await resp.json() == {"ok": True}
    assert orchestrator.started_with == [{"mainContainer": ".x"}]

    resp = await client.post("/scrape")
    assert resp.status == 409
    assert (await resp.json())["error"] == "Scrape already running"


async def test_invalid_json_body(control):
    client, orchestrator, _ = control

    resp = await client.post("/scrape", data="{not json", headers={"Content-Type": "application/json"})

    assert resp.status == 400
    assert orchestrator.started_with == []


async def test_non_object_selectors_rejected(control):
    client, orchestrator, _ = control

    resp = await client.post("/scrape", json={"selectors": "x"})

    assert resp.status == 400
    assert (await resp.json())["error"] == "Invalid JSON body"
    assert orchestrator.started_with == []


async def test_results_and_reset(control):
    client, orchestrator, _ = control

    resp = await client.get("/results")
    assert (await resp.json())["results"] == [{"Number": "INC1"}]

    resp = await client.post("/reset")
    assert await resp.json() == {"ok": True}
    assert orchestrator.resets == 1


async def test_events_are_broadcast_to_websocket(control):
    client, orchestrator, app = control
    broadcast = app[BROADCAST_KEY]
    assert broadcast in orchestrator.sinks

    ws = await client.ws_connect("/events")
    try:
        for _ in range(50):
            if broadcast.clients:
                break
            await asyncio.sleep(0.01)
        await broadcast.handle(Event(kind="progress", message="1/2", data={"current": 1, "total": 2}))

        payload = json.loads((await ws.receive(timeout=2)).data)
    finally:
        await ws.close()

    assert payload["kind"] == "progress"
    assert payload["data"] == {"current": 1, "total": 2}
