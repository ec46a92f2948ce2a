"""
Persistence, export and event sinks for incident scrapes.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.infra.db import Database, SlotStore
from core.interfaces import Sink
from core.models import Event, ResultRow

logger = logging.getLogger(__name__)

RESULTS_SLOT = "incidentsJson"
SUMMARIES_SLOT = "incidentSummaries"


def to_records(results: List[ResultRow]) -> List[Dict[str, Any]]:
    return [row.to_record() for row in results]


class ResultStore:
    """The two persisted slots: full result array and latest summaries."""

    def __init__(self, slots: SlotStore):
        self.slots = slots

    @classmethod
    def open(cls, db_path: str) -> "ResultStore":
        return cls(SlotStore(Database(db_path)))

    async def save_results(self, results: List[ResultRow]) -> None:
        await self.slots.put(RESULTS_SLOT, to_records(results))
        logger.info(f"Persisted {len(results)} results")

    async def save_summaries(self, summaries: List[Dict[str, Any]]) -> None:
        await self.slots.put(SUMMARIES_SLOT, list(summaries))

    async def load_results(self) -> List[Dict[str, Any]]:
        return await self.slots.get(RESULTS_SLOT, [])

    async def load_summaries(self) -> List[Dict[str, Any]]:
        return await self.slots.get(SUMMARIES_SLOT, [])

    async def clear(self) -> None:
        await self.slots.put(RESULTS_SLOT, [])
        await self.slots.put(SUMMARIES_SLOT, [])
        logger.info("Cleared persisted results and summaries")

    async def close(self) -> None:
        await self.slots.close()


class JsonExporter:
    """Writes the result array to one pretty-printed JSON file, overwriting it."""

    def __init__(self, export_dir: str = "exports", file_name: str = "site1_details.json"):
        self.path = Path(export_dir) / file_name

    def export(self, records: List[Dict[str, Any]]) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2, ensure_ascii=False)
        logger.info(f"Exported {len(records)} results to {self.path}")
        return self.path


def import_results(path: str) -> List[Any]:
    """Read an exported JSON array back; the element shape is not checked."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON array, got {type(data).__name__}")
    return data


class LogSink(Sink):
    """Writes every event to the log."""

    def __init__(self, logger_name: Optional[str] = None):
        self._logger = logging.getLogger(logger_name or __name__)

    @property
    def name(self) -> str:
        return "LogSink"

    async def handle(self, event: Event) -> None:
        level = logging.getLevelName(event.level.upper())
        if not isinstance(level, int):
            level = logging.INFO
        self._logger.log(level, f"[{event.kind}] {event.message}")
