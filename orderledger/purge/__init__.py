"""Draft purge: engine, run lock and audit log."""

from orderledger.purge.engine import PurgeEngine
from orderledger.purge.errors import PurgeInProgressError, PurgeLockError
from orderledger.purge.lock import LocalPurgeLock, PurgeLock, RedisPurgeLock
from orderledger.purge.models import PurgeDetail, PurgeRun, generate_purge_id
from orderledger.purge.store import PurgeAuditStore

__all__ = [
    "PurgeEngine",
    "PurgeInProgressError",
    "PurgeLockError",
    "PurgeLock",
    "LocalPurgeLock",
    "RedisPurgeLock",
    "PurgeDetail",
    "PurgeRun",
    "generate_purge_id",
    "PurgeAuditStore",
]
