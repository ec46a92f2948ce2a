import json

import pytest

import reconcile
from plugins.reconcile.models import Site1Row, Site2Result
from plugins.reconcile.report import to_csv, write_outputs
from plugins.reconcile.runner import build_summaries
from plugins.reconcile.site1 import parse_row_ids, row_from_cells
from plugins.reconcile.summary import (
    INTERVENTION,
    MISSING_ID,
    NO_ACTION,
    NOT_FOUND,
    REVIEW,
    build_summary,
)


def _row(status="Active", application_id="APP-1"):
    return Site1Row(
        application_time="01/01/2025 10:00",
        application_no="AN-1",
        presale_no="PS-1",
        chassis_no="CH-1",
        site1_status=status,
        application_id=application_id,
    )


def test_status_compare_ignores_case_and_whitespace():
    summary = build_summary(_row("Active"), Site2Result(application_id="APP-1", site2_status="active "))

    assert summary.delta == "not changed"
    assert summary.action == NO_ACTION


def test_changed_status_needs_review():
    summary = build_summary(_row("Active"), Site2Result(application_id="APP-1", site2_status="Cancelled"))

    assert summary.delta == "changed"
    assert summary.action == REVIEW
    assert summary.summary_text == (
        "Identifiers: ApplicationId APP-1, ApplicationNo AN-1, PresaleNo PS-1, ChassisNo CH-1. "
        "Site 1: Active at 01/01/2025 10:00. Site 2: Cancelled. Delta: changed. Action: " + REVIEW
    )


@pytest.mark.parametrize("status", ["Expired", "Cancellation not allowed", "User cannot cancel"])
def test_blocking_status_requires_intervention(status):
    summary = build_summary(_row(status), Site2Result(application_id="APP-1", site2_status=status))

    assert summary.delta == "not changed"
    assert summary.action == INTERVENTION


def test_missing_application_id():
    summary = build_summary(_row(application_id=None))

    assert summary.delta == "unknown"
    assert summary.application_id is None
    assert summary.site2_status is None
    assert summary.action == MISSING_ID
    assert "Site 2: skipped" in summary.summary_text


def test_site2_not_found():
    summary = build_summary(_row(), Site2Result(application_id="APP-1", not_found=True))

    assert summary.delta == "unknown"
    assert summary.action == NOT_FOUND


def test_build_summaries_pairs_by_application_id():
    rows = [_row(application_id="A"), _row(application_id="B"), _row(application_id=None)]
    site2 = [Site2Result(application_id="B", site2_status="Expired")]

    summaries = build_summaries(rows, site2)

    assert [s.action for s in summaries] == [NOT_FOUND, INTERVENTION, MISSING_ID]


def test_parse_row_ids_sorts_numerically_and_dedupes():
    test_ids = [
        "row-10-column-status-content",
        "row-2-column-application-no-content",
        "row-2-column-status-content",
        "results-table",
        None,
    ]

    assert parse_row_ids(test_ids) == ["2", "10"]


def test_row_from_cells():
    row = row_from_cells({"application-no": " AN-7 ", "status": "Active", "application-id": "  "})

    assert row.application_no == "AN-7"
    assert row.site1_status == "Active"
    assert row.application_id is None
    assert row.buyer_name == ""


def test_csv_quotes_and_empty():
    assert to_csv([]) == ""
    csv_text = to_csv([
        {"applicationNo": "AN-1", "stage": "site2", "message": 'Timeout, "search" stuck'},
        {"applicationNo": "AN-2", "stage": "site2", "message": None},
    ])

    assert csv_text == (
        "applicationNo,stage,message\n"
        'AN-1,site2,"Timeout, ""search"" stuck"\n'
        "AN-2,site2,\n"
    )


def test_write_outputs(tmp_path):
    rows = [_row(), _row(application_id=None)]
    site2 = [Site2Result(application_id="APP-1", site2_status="Active")]
    summaries = build_summaries(rows, site2)

    report = write_outputs(str(tmp_path), rows, site2, summaries, [])

    raw_site1 = json.loads((tmp_path / "raw" / "site1.json").read_text(encoding="utf-8"))
    assert raw_site1[1]["applicationId"] is None
    assert raw_site1[0]["site1Status"] == "Active"
    assert json.loads((tmp_path / "raw" / "site2.json").read_text())[0]["site2Status"] == "Active"
    assert len(json.loads((report / "summaries.json").read_text())) == 2
    assert (report / "summaries.md").read_text().startswith("- Identifiers: ApplicationId APP-1")
    assert (report / "errors.csv").read_text() == ""


def test_cli_requires_date_range(capsys):
    with pytest.raises(SystemExit) as info:
        reconcile.main(["--to", "31/01/2025"])

    assert info.value.code == 2
    assert "Mandatory date range missing" in capsys.readouterr().err


def test_cli_parses_flags():
    args = reconcile.build_parser().parse_args(
        ["--from", "01/01/2025", "--to", "31/01/2025", "--headless", "false", "--maxRows", "3", "--env", "prod"]
    )

    assert args.from_date == "01/01/2025"
    assert args.headless is False
    assert args.maxRows == 3
    assert args.env == "prod"
