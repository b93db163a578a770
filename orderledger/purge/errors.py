"""Purge engine errors."""

from orderledger.db.errors import ConflictError, ConnectionError


class PurgeInProgressError(ConflictError):
    """Another purge run holds the run lock.

    Nothing was deleted and no audit record was written.
    """

    def __init__(self, lock_name: str) -> None:
        super().__init__(f"Purge already in progress (lock: {lock_name})")
        self.lock_name = lock_name


class PurgeLockError(ConnectionError):
    """The lock backend could not be reached.

    The engine still records a FAILED run for the attempt.
    """

    def __init__(self, lock_name: str, cause: Exception | None = None) -> None:
        super().__init__(f"Purge lock backend unavailable (lock: {lock_name}): {cause}", cause=cause)
        self.lock_name = lock_name
