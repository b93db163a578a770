"""Record versioning: append-only store, index and orchestrator."""

from orderledger.versioning.enums import PurgeStatus, VersionStatus
from orderledger.versioning.errors import (
    FieldViolation,
    RecordNotFoundError,
    SchemaNotFoundError,
    ValidationFailureError,
    VersionConflictError,
)
from orderledger.versioning.index import VersionIndex
from orderledger.versioning.models import (
    DraftVersionsGroup,
    IndexEntry,
    RecordSummary,
    VersionedRecord,
    VersionHistory,
    VersionResponse,
    VersionSummary,
)
from orderledger.versioning.orchestrator import VersionOrchestrator
from orderledger.versioning.reconcile import IndexReconciler, ReconcileReport, ReconcileResult
from orderledger.versioning.record_ids import RecordIdPolicy
from orderledger.versioning.schema import (
    FieldValidator,
    NoopFieldValidator,
    SchemaResolver,
    StaticSchemaResolver,
)
from orderledger.versioning.store import VersionStore

__all__ = [
    "VersionStatus",
    "PurgeStatus",
    "FieldViolation",
    "RecordNotFoundError",
    "SchemaNotFoundError",
    "ValidationFailureError",
    "VersionConflictError",
    "VersionStore",
    "VersionIndex",
    "VersionedRecord",
    "IndexEntry",
    "VersionResponse",
    "VersionSummary",
    "VersionHistory",
    "RecordSummary",
    "DraftVersionsGroup",
    "VersionOrchestrator",
    "IndexReconciler",
    "ReconcileResult",
    "ReconcileReport",
    "RecordIdPolicy",
    "SchemaResolver",
    "StaticSchemaResolver",
    "FieldValidator",
    "NoopFieldValidator",
]
