"""Service wiring.

Builds the stores, orchestrator, reconciler and purge engine for the
configured storage backend.

Usage:
    from orderledger.bootstrap import build_services

    services = await build_services()
    try:
        await services.orchestrator.create("ORD-00001", {...}, "alice")
    finally:
        await services.close()
"""

from dataclasses import dataclass

from prometheus_client import start_http_server
from redis.asyncio import Redis

from orderledger.config import Settings, get_settings
from orderledger.db.pool import PostgresPool
from orderledger.observability.logging import get_logger, setup_logging
from orderledger.purge.engine import PurgeEngine
from orderledger.purge.lock import LocalPurgeLock, PurgeLock, RedisPurgeLock
from orderledger.purge.store import PurgeAuditStore
from orderledger.purge.stores.inmemory import InMemoryPurgeAuditStore
from orderledger.purge.stores.postgres import PostgresPurgeAuditStore
from orderledger.versioning.index import VersionIndex
from orderledger.versioning.orchestrator import VersionOrchestrator
from orderledger.versioning.reconcile import IndexReconciler
from orderledger.versioning.record_ids import RecordIdPolicy
from orderledger.versioning.schema import StaticSchemaResolver
from orderledger.versioning.store import VersionStore
from orderledger.versioning.stores.inmemory import InMemoryVersionIndex, InMemoryVersionStore
from orderledger.versioning.stores.postgres import PostgresVersionIndex, PostgresVersionStore

logger = get_logger(__name__)


@dataclass
class Services:
    """Everything a caller needs, sharing one set of stores."""

    store: VersionStore
    index: VersionIndex
    audit_store: PurgeAuditStore
    orchestrator: VersionOrchestrator
    reconciler: IndexReconciler
    purge_engine: PurgeEngine
    pool: PostgresPool | None = None
    redis: Redis | None = None

    async def close(self) -> None:
        """Release the database pool and redis connection, if any."""
        if self.redis is not None:
            await self.redis.aclose()
        if self.pool is not None:
            await self.pool.close()


def configure_observability(settings: Settings) -> None:
    """Set up logging and, when enabled, the metrics endpoint."""
    log_config = settings.observability.logging
    setup_logging(
        level=log_config.level,
        format=log_config.format,
        redact_pii=log_config.redact_pii,
    )

    metrics = settings.observability.metrics
    if metrics.enabled:
        start_http_server(metrics.port)
        logger.info("metrics_server_started", port=metrics.port)


def build_lock(settings: Settings) -> tuple[PurgeLock, Redis | None]:
    """Build the purge run lock for the configured backend."""
    purge = settings.purge
    if purge.lock_backend == "redis":
        redis = Redis.from_url(purge.redis_url)
        lock = RedisPurgeLock(
            redis,
            lock_timeout=purge.lock_timeout_seconds,
            blocking_timeout=purge.lock_blocking_timeout_seconds,
        )
        return lock, redis
    return LocalPurgeLock(), None


async def build_services(settings: Settings | None = None) -> Services:
    """Wire all services for the configured storage backend.

    Args:
        settings: Settings to use; loaded from config when omitted

    Returns:
        Connected services. Call close() when done.
    """
    settings = settings or get_settings()
    storage = settings.storage
    pool: PostgresPool | None = None

    if storage.backend == "postgres":
        pool = PostgresPool.from_config(storage.postgres)
        await pool.connect()
        store: VersionStore = PostgresVersionStore(pool)
        index: VersionIndex = PostgresVersionIndex(pool)
        audit_store: PurgeAuditStore = PostgresPurgeAuditStore(pool)
    else:
        store = InMemoryVersionStore()
        index = InMemoryVersionIndex()
        audit_store = InMemoryPurgeAuditStore()

    lock, redis = build_lock(settings)
    reconciler = IndexReconciler(store, index)
    orchestrator = VersionOrchestrator(
        store,
        index,
        StaticSchemaResolver(settings.versioning.active_schema_id),
        record_ids=RecordIdPolicy.from_config(settings.versioning),
        config=settings.versioning,
        reconciler=reconciler,
    )
    purge_engine = PurgeEngine(
        store,
        index,
        audit_store,
        lock=lock,
        lock_name=settings.purge.lock_name,
        reconciler=reconciler,
    )

    logger.info(
        "services_built",
        backend=storage.backend,
        lock_backend=settings.purge.lock_backend,
    )
    return Services(
        store=store,
        index=index,
        audit_store=audit_store,
        orchestrator=orchestrator,
        reconciler=reconciler,
        purge_engine=purge_engine,
        pool=pool,
        redis=redis,
    )
