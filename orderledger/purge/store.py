"""PurgeAuditStore abstract interface."""

from abc import ABC, abstractmethod

from orderledger.purge.models import PurgeRun


class PurgeAuditStore(ABC):
    """Abstract interface for the purge audit log.

    Append-only: runs are saved once and never updated.
    """

    @abstractmethod
    async def save_run(self, run: PurgeRun) -> str:
        """Save a purge run and return its purge id."""
        pass

    @abstractmethod
    async def get_run(self, purge_id: str) -> PurgeRun | None:
        """Get a purge run by purge id.

        Purge ids have second resolution; when two runs share one, the
        most recently started is returned.
        """
        pass

    @abstractmethod
    async def list_runs(self, *, limit: int = 100) -> list[PurgeRun]:
        """List purge runs, newest first."""
        pass
