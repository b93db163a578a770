"""In-memory implementation of PurgeAuditStore."""

from orderledger.purge.models import PurgeRun
from orderledger.purge.store import PurgeAuditStore


class InMemoryPurgeAuditStore(PurgeAuditStore):
    """In-memory implementation of PurgeAuditStore for testing and development.

    Uses a plain list with linear scans for queries.
    Not suitable for production use.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._runs: list[PurgeRun] = []

    async def save_run(self, run: PurgeRun) -> str:
        """Save a purge run and return its purge id."""
        self._runs.append(run)
        return run.purge_id

    async def get_run(self, purge_id: str) -> PurgeRun | None:
        """Get a purge run by purge id."""
        matches = [run for run in self._runs if run.purge_id == purge_id]
        if not matches:
            return None
        return max(matches, key=lambda run: run.start_time)

    async def list_runs(self, *, limit: int = 100) -> list[PurgeRun]:
        """List purge runs, newest first."""
        results = sorted(self._runs, key=lambda run: run.start_time, reverse=True)
        return results[:limit]
