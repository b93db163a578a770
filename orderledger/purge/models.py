"""Purge audit models."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from orderledger.versioning.enums import PurgeStatus

PurgeTrigger = Literal["scheduled", "manual"]


def generate_purge_id(start_time: datetime) -> str:
    """Build the run id, e.g. PURGE-20260211-000005."""
    return f"PURGE-{start_time.strftime('%Y%m%d-%H%M%S')}"


class PurgeDetail(BaseModel):
    """What a purge run did to one record."""

    model_config = ConfigDict(frozen=True)

    record_id: str = Field(..., description="Record processed")
    deleted_version_numbers: list[int] = Field(
        default_factory=list, description="DRAFT versions deleted, ascending"
    )
    retained_draft_version: int | None = Field(
        default=None, description="Highest DRAFT version, kept"
    )
    final_version_count: int = Field(default=0, ge=0, description="FINAL versions, untouched")

    def to_document(self) -> dict[str, Any]:
        return {
            "recordId": self.record_id,
            "deletedVersions": self.deleted_version_numbers,
            "retainedDraftVersion": self.retained_draft_version,
            "finalVersionsCount": self.final_version_count,
        }


class PurgeRun(BaseModel):
    """Audit record of one purge execution.

    Written exactly once per executed run, including failed runs.
    """

    model_config = ConfigDict(frozen=True)

    purge_id: str = Field(..., description="PURGE-YYYYMMDD-HHMMSS of the start time (UTC)")
    start_time: datetime
    end_time: datetime
    duration_ms: int = Field(..., ge=0)
    status: PurgeStatus
    trigger: PurgeTrigger = Field(default="scheduled", description="What started the run")
    records_processed: int = Field(default=0, ge=0)
    versions_deleted: int = Field(default=0, ge=0)
    versions_retained: int = Field(default=0, ge=0)
    processed_record_ids: list[str] = Field(default_factory=list)
    details: list[PurgeDetail] = Field(default_factory=list)
    error_message: str | None = None

    def to_document(self) -> dict[str, Any]:
        """Render the external audit shape of this run."""
        document: dict[str, Any] = {
            "purgeId": self.purge_id,
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat(),
            "durationMs": self.duration_ms,
            "status": self.status.value,
            "trigger": self.trigger,
            "totalRecordsProcessed": self.records_processed,
            "totalVersionsDeleted": self.versions_deleted,
            "totalVersionsRetained": self.versions_retained,
            "processedRecordIds": self.processed_record_ids,
            "perRecordDetails": [d.to_document() for d in self.details],
        }
        if self.error_message is not None:
            document["errorMessage"] = self.error_message
        return document
