"""
Core data models for the incident scraping platform.

Records serialise with camelCase aliases (``linkUrl``, ``detailError`` ...)
so the exported JSON keeps the shape the dashboard and the summarizer read.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# --------------------------------------------------------------------------- #
# Incident list / detail
class ListRow(CamelModel):
    """One row of the incident list view, normalised at ingestion."""
    model_config = ConfigDict(frozen=True)

    number: str = ""
    state: str = ""
    link_url: str = ""
    columns: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_columns(cls, columns: Dict[str, str], *, state: str, link_url: str) -> "ListRow":
        number = columns.get("Number") or columns.get("number") or ""
        return cls(number=number, state=state, link_url=link_url, columns=dict(columns))


class DetailSelectors(CamelModel):
    """CSS selectors used by the detail scraper; any of them can be overridden."""
    main_container: str = "#sn_form_inline_stream_entries"
    entry: str = "li.h-card"
    time_wrap: str = ".sn-card-component-time"
    time: str = ".date-calendar"
    created_by: str = ".sn-card-component-createdby"
    body: str = ".sn-widget-textblock-body"
    record_row: str = ".sn-widget-list-table li"
    record_cell: str = ".sn-widget-list-table-cell"
    attachment_link: str = ".sn-card-component_attachment a.stream-action"


class ActivityRecord(CamelModel):
    key: str = ""
    value: str = ""


class AttachmentRef(CamelModel):
    href: str = ""
    file_name: str = ""
    size: str = ""


class ActivityEntry(CamelModel):
    """One activity-stream entry of an incident."""
    type: str = ""
    time: str = ""
    by: str = ""
    text: str = ""
    records: List[ActivityRecord] = Field(default_factory=list)
    attachment: Optional[AttachmentRef] = None

    @model_validator(mode="after")
    def _drop_empty_records(self) -> "ActivityEntry":
        self.records = [r for r in self.records if r.key or r.value]
        return self


class Detail(CamelModel):
    activity: List[ActivityEntry] = Field(default_factory=list)


class DetailOutcome(CamelModel):
    ok: bool
    detail: Optional[Detail] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, detail: Detail) -> "DetailOutcome":
        return cls(ok=True, detail=detail)

    @classmethod
    def failure(cls, error: str) -> "DetailOutcome":
        return cls(ok=False, error=error)


# --------------------------------------------------------------------------- #
# Cross-reference
class ApplicationKeys(CamelModel):
    application_id: str = ""
    emirates_id: str = ""
    presale_no: str = ""
    chassis_no: str = ""

    def has_any(self) -> bool:
        return bool(self.application_id or self.presale_no or self.emirates_id or self.chassis_no)


class AttachmentResult(CamelModel):
    """Outcome of one attachment download: either ``base64`` or ``error``."""
    file_name: str = ""
    url: str = ""
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None
    base64: Optional[str] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> "AttachmentResult":
        if (self.base64 is None) == (self.error is None):
            raise ValueError("attachment result needs exactly one of base64 or error")
        return self

    @property
    def ok(self) -> bool:
        return self.error is None


class AdminOutcome(CamelModel):
    ok: bool
    application_data: Dict[str, str] = Field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "AdminOutcome":
        return cls(ok=False, error=error)


# --------------------------------------------------------------------------- #
# Summaries
class StructuredSummary(BaseModel):
    """Structured summary returned by the summarization service."""
    model_config = ConfigDict(extra="allow")

    title: str = ""
    what_happened: str = ""
    key_timeline: List[str] = Field(default_factory=list)
    current_application_state: Union[str, Dict[str, Any], None] = None
    evidence: List[str] = Field(default_factory=list)
    attachments: List[str] = Field(default_factory=list)


class IncidentSummary(BaseModel):
    model_config = ConfigDict(extra="allow")

    number: str = ""
    summary: Optional[str] = None
    structured: Optional[StructuredSummary] = None


# --------------------------------------------------------------------------- #
# Results & run state
class ResultRow(CamelModel):
    """Merged per-incident record, mutated in place as each stage completes."""
    number: str = ""
    state: str = ""
    link_url: str = ""
    columns: Dict[str, str] = Field(default_factory=dict)
    detail: Optional[Detail] = None
    detail_error: Optional[str] = None
    attachments: Optional[List[AttachmentResult]] = None
    attachment_errors: Optional[List[AttachmentResult]] = None
    application_keys: Optional[ApplicationKeys] = None
    application_data: Optional[Dict[str, str]] = None
    application_error: Optional[str] = None
    summary: Optional[str] = None
    summary_structured: Optional[StructuredSummary] = None

    @classmethod
    def from_list_row(cls, row: ListRow, **fields: Any) -> "ResultRow":
        return cls(
            number=row.number,
            state=row.state,
            link_url=row.link_url,
            columns=dict(row.columns),
            **fields,
        )

    def to_record(self) -> Dict[str, Any]:
        """Flatten to the exported shape: raw columns first, then stage fields."""
        record: Dict[str, Any] = dict(self.columns)
        record.update(
            self.model_dump(by_alias=True, exclude_none=True, exclude={"number", "columns"})
        )
        return record


class RunState(CamelModel):
    running: bool = False
    results: List[ResultRow] = Field(default_factory=list)
    started_at: float = 0.0


class Event(BaseModel):
    """Notification pushed to sinks: progress, done, error, summaries_*."""
    kind: str
    level: str = "INFO"  # INFO, WARNING, ERROR
    message: str = ""
    source: str = "orchestrator"
    timestamp: datetime = Field(default_factory=_utcnow)
    data: Dict[str, Any] = Field(default_factory=dict)
