"""Versioning domain models.

Contains the Pydantic models for stored versions, their payload-free
index projection, and the read-side views built from them.

There is no stored "latest" flag on any persisted model. Whether a
version is the latest is derived at read time as max(version_number)
and only appears on the response/summary views.
"""

import json
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from orderledger.versioning.enums import VersionStatus

# Fixed overhead added to the serialized payload length when estimating size
BASE_DOCUMENT_SIZE = 500


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


def estimate_payload_size(payload: dict[str, Any]) -> int:
    """Approximate stored size in bytes of a version carrying this payload."""
    serialized = json.dumps(payload, default=str, separators=(",", ":"))
    return BASE_DOCUMENT_SIZE + len(serialized) * 2


class VersionMetadata(BaseModel):
    """Fields shared by a stored version and its index entry."""

    model_config = ConfigDict(frozen=True)

    record_id: str = Field(..., min_length=1, description="Business key, stable across versions")
    version_number: int = Field(..., ge=1, description="Sequential per record, starting at 1")
    schema_version_id: str = Field(..., min_length=1, description="Schema used to read the payload")
    status: VersionStatus = Field(..., description="DRAFT or FINAL")
    author: str = Field(..., description="Who wrote this version")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")
    previous_version_number: int | None = Field(
        default=None, ge=1, description="Version this one supersedes"
    )
    change_note: str | None = Field(default=None, description="Optional free text")

    @model_validator(mode="after")
    def _check_previous_link(self) -> "VersionMetadata":
        if self.version_number == 1 and self.previous_version_number is not None:
            raise ValueError("version 1 cannot link to a previous version")
        if self.version_number > 1:
            if self.previous_version_number is None:
                raise ValueError(
                    f"version {self.version_number} must link to a previous version"
                )
            if self.previous_version_number >= self.version_number:
                raise ValueError("previous_version_number must be lower than version_number")
        return self

    @property
    def key(self) -> tuple[str, int]:
        """Composite unique key."""
        return (self.record_id, self.version_number)


class VersionedRecord(VersionMetadata):
    """One immutable snapshot of a record.

    Written once by the orchestrator; deleted only by the purge engine
    and only while DRAFT.
    """

    payload: dict[str, Any] = Field(default_factory=dict, description="Denormalized business data")

    def to_document(self) -> dict[str, Any]:
        """Render the external JSON shape of this version."""
        return {
            "recordId": self.record_id,
            "versionNumber": self.version_number,
            "schemaVersionId": self.schema_version_id,
            "status": self.status.value,
            "author": self.author,
            "timestamp": self.created_at.isoformat(),
            "previousVersionNumber": self.previous_version_number,
            "changeNote": self.change_note,
            "data": self.payload,
        }


class IndexEntry(VersionMetadata):
    """Payload-free mirror of a VersionedRecord."""

    payload_size: int = Field(default=0, ge=0, description="Approximate size in bytes")

    @classmethod
    def from_record(cls, record: VersionedRecord) -> "IndexEntry":
        """Project a stored version onto its index entry."""
        return cls(
            **record.model_dump(exclude={"payload"}),
            payload_size=estimate_payload_size(record.payload),
        )


class VersionResponse(VersionedRecord):
    """A stored version with its derived latest flag."""

    is_latest: bool = Field(..., description="Derived: version_number == max for the record")

    @classmethod
    def from_record(cls, record: VersionedRecord, *, is_latest: bool) -> "VersionResponse":
        """Wrap a stored version with a freshly derived latest flag."""
        return cls(**record.model_dump(), is_latest=is_latest)


class VersionSummary(IndexEntry):
    """History list item built from the index."""

    is_latest: bool = Field(..., description="Derived: version_number == max for the record")

    @classmethod
    def from_entry(cls, entry: IndexEntry, *, is_latest: bool) -> "VersionSummary":
        """Wrap an index entry with a derived latest flag."""
        return cls(**entry.model_dump(), is_latest=is_latest)


class VersionHistory(BaseModel):
    """All versions of one record, oldest first."""

    model_config = ConfigDict(frozen=True)

    record_id: str = Field(..., description="Business key")
    total: int = Field(..., ge=0, description="Number of versions")
    final_count: int = Field(..., ge=0, description="Number of FINAL versions")
    draft_count: int = Field(..., ge=0, description="Number of DRAFT versions")
    versions: list[VersionSummary] = Field(default_factory=list, description="Ascending by version")


class RecordSummary(BaseModel):
    """Latest version metadata of one record plus per-status counts."""

    model_config = ConfigDict(frozen=True)

    record_id: str = Field(..., description="Business key")
    latest_version_number: int = Field(..., ge=1, description="Highest version number")
    schema_version_id: str = Field(..., description="Schema of the latest version")
    status: VersionStatus = Field(..., description="Status of the latest version")
    author: str = Field(..., description="Author of the latest version")
    created_at: datetime = Field(..., description="Creation time of the latest version")
    change_note: str | None = Field(default=None, description="Change note of the latest version")
    total_versions: int = Field(..., ge=1)
    final_versions: int = Field(..., ge=0)
    draft_versions: int = Field(..., ge=0)

    @classmethod
    def from_entries(cls, entries: list[IndexEntry]) -> "RecordSummary":
        """Summarize a non-empty list of index entries for one record."""
        latest = max(entries, key=lambda e: e.version_number)
        final_versions = sum(1 for e in entries if e.status == VersionStatus.FINAL)
        return cls(
            record_id=latest.record_id,
            latest_version_number=latest.version_number,
            schema_version_id=latest.schema_version_id,
            status=latest.status,
            author=latest.author,
            created_at=latest.created_at,
            change_note=latest.change_note,
            total_versions=len(entries),
            final_versions=final_versions,
            draft_versions=len(entries) - final_versions,
        )


class DraftVersionsGroup(BaseModel):
    """A record id and its current DRAFT version numbers."""

    model_config = ConfigDict(frozen=True)

    record_id: str = Field(..., description="Business key")
    draft_versions: list[int] = Field(default_factory=list, description="DRAFT version numbers")
