"""
Output files of a reconciliation run.

    <out>/raw/site1.json
    <out>/raw/site2.json
    <out>/report/summaries.json
    <out>/report/summaries.md
    <out>/report/errors.csv
"""

import csv
import io
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from .models import Site1Row, Site2Result, Summary


logger = logging.getLogger(__name__)


def to_csv(rows: List[Dict[str, str]]) -> str:
    """CSV with the first row's keys as header; ``""`` for no rows."""
    if not rows:
        return ""
    buffer = io.StringIO()
    writer = csv.DictWriter(
        buffer,
        fieldnames=list(rows[0].keys()),
        extrasaction="ignore",
        lineterminator="\n",
    )
    writer.writeheader()
    for row in rows:
        writer.writerow({k: row.get(k) or "" for k in writer.fieldnames})
    return buffer.getvalue()


def to_markdown(summaries: List[Summary]) -> str:
    return "\n".join(f"- {s.summary_text}" for s in summaries)


def _write_json(path: Path, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def write_outputs(
    out_dir: str,
    site1_rows: List[Site1Row],
    site2_results: List[Site2Result],
    summaries: List[Summary],
    errors: List[Dict[str, str]],
) -> Path:
    """Write every output file under ``out_dir``; returns the report directory."""
    raw_dir = Path(out_dir) / "raw"
    report_dir = Path(out_dir) / "report"
    raw_dir.mkdir(parents=True, exist_ok=True)
    report_dir.mkdir(parents=True, exist_ok=True)

    _write_json(raw_dir / "site1.json", [r.model_dump(by_alias=True) for r in site1_rows])
    _write_json(raw_dir / "site2.json", [r.dump() for r in site2_results])
    _write_json(report_dir / "summaries.json", [s.model_dump(by_alias=True) for s in summaries])
    (report_dir / "summaries.md").write_text(to_markdown(summaries), encoding="utf-8")
    (report_dir / "errors.csv").write_text(to_csv(errors), encoding="utf-8")

    logger.info(f"Wrote {len(summaries)} summaries and {len(errors)} errors to {report_dir}")
    return report_dir
