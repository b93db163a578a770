"""Version index reconciliation workflow.

Scheduled job that repairs index entries left missing or orphaned by
store/index writes that did not both succeed.
"""

from dataclasses import dataclass, field
from typing import Any

from orderledger.config.models.jobs import HatchetConfig
from orderledger.observability.logging import get_logger
from orderledger.versioning.reconcile import IndexReconciler

logger = get_logger(__name__)


@dataclass
class ReconcileIndexInput:
    """Input for the reconciliation workflow."""

    record_id: str | None = None  # None = every record


@dataclass
class ReconcileIndexOutput:
    """Output from the reconciliation workflow."""

    records_checked: int
    entries_added: int
    entries_removed: int
    orphan_final_entries: int
    success: bool
    failed_record_ids: list[str] = field(default_factory=list)
    error: str | None = None


class ReconcileVersionIndexWorkflow:
    """Workflow to bring the version index in line with the version store.

    Idempotent: a second pass over a consistent index changes nothing.
    """

    WORKFLOW_NAME = "reconcile-version-index"
    CRON_SCHEDULE = "30 1 * * *"  # Daily at 1:30 AM UTC, after the purge

    def __init__(self, reconciler: IndexReconciler) -> None:
        """Initialize workflow.

        Args:
            reconciler: Index reconciler to run
        """
        self._reconciler = reconciler

    async def run(self, input_data: ReconcileIndexInput) -> ReconcileIndexOutput:
        """Execute the reconciliation workflow.

        Args:
            input_data: Workflow input with optional record filter

        Returns:
            ReconcileIndexOutput with repair counts
        """
        try:
            if input_data.record_id:
                result = await self._reconciler.reconcile_record(input_data.record_id)
                return ReconcileIndexOutput(
                    records_checked=1,
                    entries_added=len(result.added_versions),
                    entries_removed=len(result.removed_versions),
                    orphan_final_entries=len(result.orphan_final_versions),
                    success=True,
                )

            report = await self._reconciler.reconcile_all()
            return ReconcileIndexOutput(
                records_checked=report.records_checked,
                entries_added=report.entries_added,
                entries_removed=report.entries_removed,
                orphan_final_entries=report.orphan_final_entries,
                success=not report.failed_record_ids,
                failed_record_ids=list(report.failed_record_ids),
            )

        except Exception as e:
            logger.error(
                "reconcile_index_failed",
                record_id=input_data.record_id,
                error=str(e),
            )
            return ReconcileIndexOutput(
                records_checked=0,
                entries_added=0,
                entries_removed=0,
                orphan_final_entries=0,
                success=False,
                error=str(e),
            )


def register_workflow(
    hatchet: Any,
    reconciler: IndexReconciler,
    config: HatchetConfig | None = None,
) -> Any:
    """Register the reconciliation workflow with Hatchet.

    Args:
        hatchet: Hatchet SDK instance
        reconciler: Index reconciler to run
        config: Hatchet settings for cron and retry policy

    Returns:
        Registered workflow
    """
    config = config or HatchetConfig()
    workflow_instance = ReconcileVersionIndexWorkflow(reconciler)

    @hatchet.workflow(
        name=ReconcileVersionIndexWorkflow.WORKFLOW_NAME,
        on_crons=[config.cron_reconcile_index],
    )
    class HatchetReconcileVersionIndexWorkflow:
        """Hatchet workflow wrapper for index reconciliation."""

        @hatchet.step(
            retries=config.retry_max_attempts,
            retry_delay=f"{config.retry_backoff_seconds}s",
        )
        async def reconcile_index(self, context: Any) -> dict:
            """Execute the reconciliation step."""
            input_data = context.workflow_input() or {}
            result = await workflow_instance.run(
                ReconcileIndexInput(record_id=input_data.get("record_id"))
            )
            return {
                "records_checked": result.records_checked,
                "entries_added": result.entries_added,
                "entries_removed": result.entries_removed,
                "orphan_final_entries": result.orphan_final_entries,
                "failed_record_ids": result.failed_record_ids,
                "success": result.success,
                "error": result.error,
            }

    return HatchetReconcileVersionIndexWorkflow
