import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer, unused_port

from core.models import ResultRow
from plugins.incidents.summarizer import SummaryClient, SummaryError, merge_summaries

INCIDENTS = [{"Number": "INC1", "detail": {"activity": []}}]


async def _serve(handler):
    app = web.Application()
    app.router.add_post("/summarize", handler)
    server = TestServer(app)
    await server.start_server()
    return server


@pytest.fixture
async def service():
    servers = []

    async def start(handler):
        server = await _serve(handler)
        servers.append(server)
        return SummaryClient(str(server.make_url("/summarize")), timeout=5)

    yield start
    for server in servers:
        await server.close()


async def test_summaries_are_returned(service):
    received = []

    async def handler(request):
        received.append(await request.json())
        return web.json_response({"summaries": [{"number": "INC1", "summary": "ok"}]})

    client = await service(handler)
    try:
        assert await client.summarize(INCIDENTS) == [{"number": "INC1", "summary": "ok"}]
    finally:
        await client.close()
    assert received == [{"incidents": INCIDENTS}]


async def test_error_body_is_passed_through(service):
    calls = []

    async def handler(request):
        calls.append(1)
        return web.Response(status=500, text="model not loaded")

    client = await service(handler)
    try:
        with pytest.raises(SummaryError, match="model not loaded"):
            await client.summarize(INCIDENTS)
    finally:
        await client.close()
    assert len(calls) == 1


async def test_missing_summaries_list_gives_empty(service):
    async def handler(request):
        return web.json_response({"summaries": "none"})

    client = await service(handler)
    try:
        assert await client.summarize(INCIDENTS) == []
    finally:
        await client.close()


async def test_unreachable_service_mentions_url():
    url = f"http://127.0.0.1:{unused_port()}/summarize"
    client = SummaryClient(url, timeout=5)
    try:
        with pytest.raises(SummaryError) as info:
            await client.summarize(INCIDENTS)
    finally:
        await client.close()
    assert str(info.value).startswith(f"LLM server unreachable at {url}")


def test_merge_touches_only_matching_rows():
    rows = [ResultRow(number="INC1"), ResultRow(number="INC2"), ResultRow(number="INC3")]
    summaries = [
        {"number": "INC1", "summary": "Refund stuck", "structured": {"title": "Refund", "evidence": ["log"]}},
        {"number": "INC2", "structured": "free text"},
        {"summary": "no number"},
    ]

    merge_summaries(rows, summaries)

    assert rows[0].summary == "Refund stuck"
    assert rows[0].summary_structured.title == "Refund"
    assert rows[0].summary_structured.evidence == ["log"]
    assert rows[1].summary == ""
    assert rows[1].summary_structured.raw == "free text"
    assert rows[2].summary is None
    assert rows[2].summary_structured is None
