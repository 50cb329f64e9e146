from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_DATE_RE = r"^\d{4}-\d{2}-\d{2}$"
_TIME_RE = r"^\d{2}:\d{2}(?:-\d{2}:\d{2})?$"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CandidateEvent(BaseModel):
    """One event extracted from a source during a single run."""

    title: str = Field(min_length=1)
    event_date: str = Field(pattern=_DATE_RE)
    event_time: Optional[str] = Field(default=None, pattern=_TIME_RE)
    place: Optional[str] = None
    detail: Optional[str] = None

    source_url: str
    source_site: str
    region: str
    image_url: Optional[str] = None
    is_new: bool = True

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        v = " ".join(v.split())
        if not v:
            raise ValueError("title must not be blank")
        return v

    @property
    def dedupe_key(self) -> tuple[str, str, str]:
        return (self.title, self.event_date, self.source_site)

    def to_row(self) -> Dict[str, Any]:
        """Row for the events table; optional fields are omitted when empty."""
        row = self.model_dump()
        return {k: v for k, v in row.items() if v is not None}


class LogStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


class LogEntry(BaseModel):
    site_name: str
    status: LogStatus
    events_count: int = 0
    error_message: Optional[str] = None
    error_type: Optional[str] = None
    stack_trace: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    def to_row(self) -> Dict[str, Any]:
        return {
            "site_name": self.site_name,
            "status": self.status.value,
            "events_count": self.events_count,
            "error_message": self.error_message,
            "error_type": self.error_type,
            "stack_trace": self.stack_trace,
            "created_at": self.created_at.replace(microsecond=0).isoformat(),
        }


class SourceError(BaseModel):
    message: str
    kind: str


class SourceOutcome(BaseModel):
    site_name: str
    status: LogStatus = LogStatus.FAILURE
    events_found: int = 0
    events_inserted: int = 0
    duplicates: int = 0
    insert_failures: int = 0
    attempts: int = 0
    drift: bool = False
    drift_reason: Optional[str] = None
    error: Optional[SourceError] = None

    @property
    def success(self) -> bool:
        return self.status != LogStatus.FAILURE


class AlertType(str, Enum):
    ERROR = "error"
    STRUCTURE_CHANGE = "structure_change"
    WARNING = "warning"


class Alert(BaseModel):
    type: AlertType
    site_name: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.type.value,
            "siteName": self.site_name,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.details:
            payload["details"] = self.details
        return payload


class BatchError(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    site: str
    error: str
    error_type: str = Field(alias="errorType")


class BatchReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_sites: int = Field(default=0, alias="totalSites")
    successful_sites: int = Field(default=0, alias="successfulSites")
    failed_sites: int = Field(default=0, alias="failedSites")
    total_events: int = Field(default=0, alias="totalEvents")
    new_events: int = Field(default=0, alias="newEvents")
    structure_changes: int = Field(default=0, alias="structureChanges")
    errors: List[BatchError] = Field(default_factory=list)
    outcomes: List[SourceOutcome] = Field(default_factory=list, exclude=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
