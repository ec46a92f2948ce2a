import json

import pytest

from core.models import ResultRow
from plugins.incidents.sinks import JsonExporter, ResultStore, import_results


@pytest.fixture
async def store(tmp_path):
    s = ResultStore.open(str(tmp_path / "data" / "incidents.db"))
    yield s
    await s.close()


def _rows():
    return [
        ResultRow(number="INC1", state="New", link_url="https://esm.gov.ae/1", columns={"Number": "INC1"}),
        ResultRow(number="INC2", state="New", columns={"Number": "INC2"}, detail_error="Missing link URL"),
    ]


async def test_empty_store_gives_empty_slots(store):
    assert await store.load_results() == []
    assert await store.load_summaries() == []


async def test_results_are_replaced_wholesale(store):
    await store.save_results(_rows())
    await store.save_results(_rows()[1:])

    (saved,) = await store.load_results()
    assert saved["Number"] == "INC2"
    assert saved["detailError"] == "Missing link URL"


async def test_summaries_and_clear(store):
    await store.save_results(_rows())
    await store.save_summaries([{"number": "INC1", "summary": "Refund pending"}])

    assert (await store.load_summaries())[0]["summary"] == "Refund pending"

    await store.clear()

    assert await store.load_results() == []
    assert await store.load_summaries() == []


async def test_store_survives_reopen(tmp_path):
    path = str(tmp_path / "incidents.db")
    first = ResultStore.open(path)
    await first.save_results(_rows())
    await first.close()

    second = ResultStore.open(path)
    try:
        assert [r["Number"] for r in await second.load_results()] == ["INC1", "INC2"]
    finally:
        await second.close()


def test_export_overwrites_and_imports_back(tmp_path):
    exporter = JsonExporter(str(tmp_path / "exports"), "site1_details.json")
    records = [row.to_record() for row in _rows()]

    exporter.export([{"stale": True}])
    path = exporter.export(records)

    assert path == tmp_path / "exports" / "site1_details.json"
    assert json.loads(path.read_text(encoding="utf-8")) == records
    assert path.read_text(encoding="utf-8").startswith("[\n  {")
    assert import_results(str(path)) == records


def test_import_rejects_non_array(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text('{"number": "INC1"}', encoding="utf-8")

    with pytest.raises(ValueError, match="expected a JSON array"):
        import_results(str(path))
