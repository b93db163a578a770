"""Purge audit store backends."""

from orderledger.purge.store import PurgeAuditStore
from orderledger.purge.stores.inmemory import InMemoryPurgeAuditStore
from orderledger.purge.stores.postgres import PostgresPurgeAuditStore

__all__ = [
    "PurgeAuditStore",
    "InMemoryPurgeAuditStore",
    "PostgresPurgeAuditStore",
]
