"""
Pydantic Schemas - Data Validation Models

Defines the schemas used throughout the harvester:
- API response envelopes
- Flight records (identifier plus opaque payload)
- Per-page and per-record results
- Run summary and Redis run events

Usage:
    from utils.schemas import FlightRecord

    flight = FlightRecord.model_validate(raw_data)
    print(flight.IDFlight)
"""

from datetime import datetime, timezone
from typing import Any, Optional

import orjson
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Envelope(BaseModel):
    """Response wrapper returned by every JSON endpoint.

    {"success": true, "message": "...", "meta": {...}, "data": [...]}
    """

    model_config = ConfigDict(extra="allow")

    success: bool = Field(default=False, description="Request outcome")
    message: Optional[str] = Field(default=None, description="Server message")
    meta: dict[str, Any] = Field(default_factory=dict, description="Envelope metadata")
    data: Any = Field(default=None, description="Payload")

    @field_validator("meta", mode="before")
    @classmethod
    def _meta_or_empty(cls, v: Any) -> Any:
        # the API sends null or [] when there is no metadata
        return v or {}


class FlightRecord(BaseModel):
    """One flight as returned by the listing endpoint.

    Only IDFlight is interpreted; every other field is carried through
    unchanged, nulls included.
    """

    model_config = ConfigDict(extra="allow")

    IDFlight: str = Field(..., min_length=1, description="Unique flight identifier")

    @field_validator("IDFlight", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @property
    def record_id(self) -> str:
        return self.IDFlight

    def to_json_bytes(self) -> bytes:
        """Serialize the full record, identifier first, extras as received."""
        return orjson.dumps(self.model_dump(mode="json"))

    @classmethod
    def from_json_bytes(cls, raw: bytes) -> "FlightRecord":
        return cls.model_validate(orjson.loads(raw))


class PageResult(BaseModel):
    """One page of the listing."""

    offset: int = Field(..., ge=0)
    total_count: int = Field(..., ge=0)
    success: bool = True
    message: Optional[str] = None
    records: list[FlightRecord] = Field(default_factory=list)


class PersistOutcome(BaseModel):
    """What happened to one record.

    Upload fields are None when no remote store is configured or when the
    local write they depend on failed.
    """

    record_id: str
    metadata_persisted: bool = False
    artifact_persisted: bool = False
    metadata_uploaded: Optional[bool] = None
    artifact_uploaded: Optional[bool] = None
    artifact_skipped: bool = False
    error: Optional[str] = None

    @property
    def upload_failed(self) -> bool:
        return self.metadata_uploaded is False or self.artifact_uploaded is False


class RunSummary(BaseModel):
    """Aggregate counters for one harvest run."""

    pages_fetched: int = 0
    records_seen: int = 0
    records_persisted: int = 0
    metadata_failures: int = 0
    artifact_failures: int = 0
    upload_failures: int = 0
    total_count: int = 0
    elapsed_seconds: float = 0.0
    failed_ids: list[str] = Field(default_factory=list)

    def add(self, outcome: PersistOutcome) -> None:
        """Fold one record outcome into the totals."""
        self.records_seen += 1
        if outcome.artifact_persisted:
            self.records_persisted += 1
        else:
            self.artifact_failures += 1
            self.failed_ids.append(outcome.record_id)
        if not outcome.metadata_persisted:
            self.metadata_failures += 1
        if outcome.upload_failed:
            self.upload_failures += 1


class RunEvent(BaseModel):
    """Redis Pub/Sub event published after a completed run."""

    type: str = Field(default="harvest_completed", description="Event type")
    output_dir: str = Field(..., description="Local output directory")
    persisted: int = Field(..., description="Records persisted")
    failed: int = Field(..., description="Records whose artifact was not persisted")
    ts: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Timestamp")
