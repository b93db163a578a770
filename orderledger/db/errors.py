"""Store error hierarchy shared by every backend.

Store implementations wrap backend-specific failures in one of these
classes so callers can branch on the failure kind, not the driver.
"""


class StoreError(Exception):
    """Base exception for all store errors."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConnectionError(StoreError):
    """Raised when a backend is unreachable or a query fails at the driver.

    Fatal for the single call that hit it.
    """

    pass


class NotFoundError(StoreError):
    """Raised when a specific entity lookup fails.

    Not used for empty list results.
    """

    pass


class ConflictError(StoreError):
    """Raised on unique constraint violation.

    For version writes this is a lost race on (record_id, version_number)
    and is safe to retry after re-reading the highest version.
    """

    retryable: bool = True


class ValidationError(StoreError):
    """Raised on invalid data or a forbidden operation.

    Examples:
        - Deleting versions with status FINAL
        - Empty record id
    """

    pass
