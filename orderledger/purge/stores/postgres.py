"""PostgreSQL implementation of PurgeAuditStore.

Uses asyncpg for async database access.
"""

import json

import asyncpg

from orderledger.db.errors import ConnectionError
from orderledger.db.pool import PostgresPool
from orderledger.observability.logging import get_logger
from orderledger.purge.models import PurgeDetail, PurgeRun
from orderledger.purge.store import PurgeAuditStore
from orderledger.versioning.enums import PurgeStatus

logger = get_logger(__name__)

_RUN_COLUMNS = """
    purge_id, start_time, end_time, duration_ms, status, trigger,
    records_processed, versions_deleted, versions_retained,
    processed_record_ids, details, error_message
"""


class PostgresPurgeAuditStore(PurgeAuditStore):
    """PostgreSQL implementation of PurgeAuditStore.

    Table: purge_runs. Rows are immutable once written; per-record
    details are kept as JSONB.
    """

    def __init__(self, pool: PostgresPool) -> None:
        """Initialize with connection pool.

        Args:
            pool: PostgreSQL connection pool
        """
        self._pool = pool

    async def save_run(self, run: PurgeRun) -> str:
        """Save a purge run and return its purge id."""
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO purge_runs (
                        purge_id, start_time, end_time, duration_ms, status, trigger,
                        records_processed, versions_deleted, versions_retained,
                        processed_record_ids, details, error_message
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
                    """,
                    run.purge_id,
                    run.start_time,
                    run.end_time,
                    run.duration_ms,
                    run.status.value,
                    run.trigger,
                    run.records_processed,
                    run.versions_deleted,
                    run.versions_retained,
                    json.dumps(run.processed_record_ids),
                    json.dumps([d.model_dump(mode="json") for d in run.details]),
                    run.error_message,
                )
                logger.debug("purge_run_saved", purge_id=run.purge_id)
                return run.purge_id
        except Exception as e:
            logger.error("postgres_save_purge_run_error", purge_id=run.purge_id, error=str(e))
            raise ConnectionError(f"Failed to save purge run: {e}", cause=e) from e

    async def get_run(self, purge_id: str) -> PurgeRun | None:
        """Get a purge run by purge id."""
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    SELECT {_RUN_COLUMNS}
                    FROM purge_runs
                    WHERE purge_id = $1
                    ORDER BY start_time DESC
                    LIMIT 1
                    """,
                    purge_id,
                )
                if row:
                    return self._row_to_run(row)
                return None
        except Exception as e:
            logger.error("postgres_get_purge_run_error", purge_id=purge_id, error=str(e))
            raise ConnectionError(f"Failed to get purge run: {e}", cause=e) from e

    async def list_runs(self, *, limit: int = 100) -> list[PurgeRun]:
        """List purge runs, newest first."""
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {_RUN_COLUMNS}
                    FROM purge_runs
                    ORDER BY start_time DESC
                    LIMIT $1
                    """,
                    limit,
                )
                return [self._row_to_run(row) for row in rows]
        except Exception as e:
            logger.error("postgres_list_purge_runs_error", error=str(e))
            raise ConnectionError(f"Failed to list purge runs: {e}", cause=e) from e

    def _row_to_run(self, row: asyncpg.Record) -> PurgeRun:
        record_ids = row["processed_record_ids"]
        if isinstance(record_ids, str):
            record_ids = json.loads(record_ids)
        details = row["details"]
        if isinstance(details, str):
            details = json.loads(details)

        return PurgeRun(
            purge_id=row["purge_id"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            duration_ms=row["duration_ms"],
            status=PurgeStatus(row["status"]),
            trigger=row["trigger"],
            records_processed=row["records_processed"],
            versions_deleted=row["versions_deleted"],
            versions_retained=row["versions_retained"],
            processed_record_ids=record_ids or [],
            details=[PurgeDetail.model_validate(d) for d in details or []],
            error_message=row["error_message"],
        )
