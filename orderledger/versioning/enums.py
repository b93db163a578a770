"""Enums for the versioning domain."""

from enum import Enum


class VersionStatus(str, Enum):
    """Lifecycle state of a single version.

    DRAFT versions are reclaimable by the purge engine; FINAL versions
    are permanent.
    """

    DRAFT = "DRAFT"
    FINAL = "FINAL"


class PurgeStatus(str, Enum):
    """Outcome of a purge run."""

    SUCCESS = "SUCCESS"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"
