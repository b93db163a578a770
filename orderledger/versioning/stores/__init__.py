"""Version store and version index backends."""

from orderledger.versioning.index import VersionIndex
from orderledger.versioning.store import VersionStore
from orderledger.versioning.stores.inmemory import InMemoryVersionIndex, InMemoryVersionStore
from orderledger.versioning.stores.postgres import PostgresVersionIndex, PostgresVersionStore

__all__ = [
    "VersionStore",
    "VersionIndex",
    "InMemoryVersionStore",
    "InMemoryVersionIndex",
    "PostgresVersionStore",
    "PostgresVersionIndex",
]
