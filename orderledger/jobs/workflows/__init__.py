"""Hatchet workflow definitions.

This module contains all background job workflows:
- PurgeDraftVersionsWorkflow: Deletes superseded DRAFT versions
- ReconcileVersionIndexWorkflow: Repairs the version index from the store
"""

from orderledger.jobs.workflows.purge_drafts import (
    PurgeDraftsInput,
    PurgeDraftsOutput,
    PurgeDraftVersionsWorkflow,
)
from orderledger.jobs.workflows.reconcile_index import (
    ReconcileIndexInput,
    ReconcileIndexOutput,
    ReconcileVersionIndexWorkflow,
)

__all__ = [
    "PurgeDraftVersionsWorkflow",
    "PurgeDraftsInput",
    "PurgeDraftsOutput",
    "ReconcileVersionIndexWorkflow",
    "ReconcileIndexInput",
    "ReconcileIndexOutput",
]
