"""Draft purge workflow.

Scheduled job that reclaims superseded DRAFT versions, keeping only
the highest DRAFT of each record. Runs daily at midnight UTC by default.
"""

from dataclasses import dataclass
from typing import Any

from orderledger.config.models.jobs import HatchetConfig
from orderledger.observability.logging import get_logger
from orderledger.purge.engine import PurgeEngine
from orderledger.purge.errors import PurgeInProgressError

logger = get_logger(__name__)


@dataclass
class PurgeDraftsInput:
    """Input for the draft purge workflow."""

    trigger: str = "scheduled"


@dataclass
class PurgeDraftsOutput:
    """Output from the draft purge workflow."""

    purge_id: str | None
    status: str | None
    records_processed: int
    versions_deleted: int
    success: bool
    skipped: bool = False
    error: str | None = None


class PurgeDraftVersionsWorkflow:
    """Workflow wrapping one PurgeEngine run.

    A run that finds the lock held is reported as skipped, not failed:
    the holder is doing the same work. PARTIAL and FAILED runs are still
    successful executions of the workflow, since their audit record was
    written; only a failure to write that record fails the workflow.
    """

    WORKFLOW_NAME = "purge-draft-versions"
    CRON_SCHEDULE = "0 0 * * *"  # Daily at midnight UTC

    def __init__(self, engine: PurgeEngine) -> None:
        """Initialize workflow.

        Args:
            engine: Purge engine to run
        """
        self._engine = engine

    async def run(self, input_data: PurgeDraftsInput) -> PurgeDraftsOutput:
        """Execute the draft purge workflow.

        Args:
            input_data: Workflow input with the trigger source

        Returns:
            PurgeDraftsOutput summarizing the run
        """
        trigger = input_data.trigger if input_data.trigger in ("scheduled", "manual") else "manual"

        try:
            run = await self._engine.run(trigger=trigger)
        except PurgeInProgressError as e:
            logger.info("purge_workflow_skipped", reason=str(e))
            return PurgeDraftsOutput(
                purge_id=None,
                status=None,
                records_processed=0,
                versions_deleted=0,
                success=True,
                skipped=True,
                error=str(e),
            )
        except Exception as e:
            logger.error("purge_workflow_failed", error=str(e))
            return PurgeDraftsOutput(
                purge_id=None,
                status=None,
                records_processed=0,
                versions_deleted=0,
                success=False,
                error=str(e),
            )

        return PurgeDraftsOutput(
            purge_id=run.purge_id,
            status=run.status.value,
            records_processed=run.records_processed,
            versions_deleted=run.versions_deleted,
            success=True,
            error=run.error_message,
        )


def register_workflow(
    hatchet: Any,
    engine: PurgeEngine,
    config: HatchetConfig | None = None,
) -> Any:
    """Register the draft purge workflow with Hatchet.

    Args:
        hatchet: Hatchet SDK instance
        engine: Purge engine to run
        config: Hatchet settings for cron and retry policy

    Returns:
        Registered workflow
    """
    config = config or HatchetConfig()
    workflow_instance = PurgeDraftVersionsWorkflow(engine)

    @hatchet.workflow(
        name=PurgeDraftVersionsWorkflow.WORKFLOW_NAME,
        on_crons=[config.cron_purge_drafts],
    )
    class HatchetPurgeDraftVersionsWorkflow:
        """Hatchet workflow wrapper for the draft purge."""

        @hatchet.step(
            retries=config.retry_max_attempts,
            retry_delay=f"{config.retry_backoff_seconds}s",
        )
        async def purge_drafts(self, context: Any) -> dict:
            """Execute the draft purge step."""
            input_data = context.workflow_input() or {}
            result = await workflow_instance.run(
                PurgeDraftsInput(trigger=input_data.get("trigger", "scheduled"))
            )
            return {
                "purge_id": result.purge_id,
                "status": result.status,
                "records_processed": result.records_processed,
                "versions_deleted": result.versions_deleted,
                "success": result.success,
                "skipped": result.skipped,
                "error": result.error,
            }

    return HatchetPurgeDraftVersionsWorkflow
