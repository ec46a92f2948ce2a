"""
Per-row reconciliation verdict: status delta plus recommended operator action.
"""

from typing import Optional

from .models import Site1Row, Site2Result, Summary

NO_ACTION = "No action required."
INTERVENTION = "User may not be able to cancel; operator intervention required."
REVIEW = "Status changed; operator should review latest status on Site 2."
MISSING_ID = "ApplicationId missing; operator manual check required."
NOT_FOUND = (
    "Site 2 record not found; operator manual check required "
    "(possible mismatch/sync/env issue)."
)

BLOCKING_PHRASES = ("expired", "cancellation not allowed", "cannot cancel")


def normalize_status(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def is_expired_or_blocked(status: str) -> bool:
    lowered = status.lower()
    return any(phrase in lowered for phrase in BLOCKING_PHRASES)


def _na(value: Optional[str]) -> str:
    return value or "N/A"


def _summary_text(row: Site1Row, application_id: str, site2: str, delta: str, action: str) -> str:
    return (
        f"Identifiers: ApplicationId {application_id}, ApplicationNo {_na(row.application_no)}, "
        f"PresaleNo {_na(row.presale_no)}, ChassisNo {_na(row.chassis_no)}. "
        f"Site 1: {_na(row.site1_status)} at {_na(row.application_time)}. "
        f"Site 2: {site2}. Delta: {delta}. Action: {action}"
    )


def build_summary(row: Site1Row, site2: Optional[Site2Result] = None) -> Summary:
    """Compare one Site 1 row with its Site 2 lookup (if any); never raises."""
    base = dict(
        application_id=row.application_id or None,
        application_no=row.application_no,
        presale_no=row.presale_no,
        chassis_no=row.chassis_no,
        site1_status=row.site1_status,
        site1_time=row.application_time,
    )

    if not row.application_id:
        return Summary(
            **base,
            site2_status=None,
            delta="unknown",
            action=MISSING_ID,
            summary_text=_summary_text(row, "N/A", "skipped", "unknown", MISSING_ID),
        )

    if site2 is None or site2.not_found:
        return Summary(
            **base,
            site2_status=None,
            delta="unknown",
            action=NOT_FOUND,
            summary_text=_summary_text(row, row.application_id, "not found", "unknown", NOT_FOUND),
        )

    site2_status = site2.site2_status or ""
    if normalize_status(row.site1_status) == normalize_status(site2_status):
        delta = "not changed"
    else:
        delta = "changed"

    if is_expired_or_blocked(site2_status):
        action = INTERVENTION
    elif delta == "changed":
        action = REVIEW
    else:
        action = NO_ACTION

    return Summary(
        **base,
        site2_status=site2_status,
        delta=delta,
        action=action,
        summary_text=_summary_text(row, row.application_id, _na(site2_status), delta, action),
    )
