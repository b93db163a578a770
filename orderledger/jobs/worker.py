"""Hatchet worker entrypoint for the scheduled version maintenance jobs.

Usage:
    # CLI command (defined in pyproject.toml)
    orderledger-worker

    # Programmatic usage
    from orderledger.jobs.worker import run_worker
    await run_worker()
"""

import asyncio
import signal
import sys
from typing import Any

from orderledger.bootstrap import Services, build_services, configure_observability
from orderledger.config import get_settings
from orderledger.config.models.jobs import HatchetConfig
from orderledger.jobs.client import HatchetClient
from orderledger.jobs.workflows import purge_drafts, reconcile_index
from orderledger.observability.logging import get_logger

logger = get_logger(__name__)

WORKER_NAME = "orderledger-worker"


def register_workflows(
    hatchet: Any,
    services: Services,
    config: HatchetConfig | None = None,
) -> list[Any]:
    """Register the purge and reconciliation workflows with Hatchet.

    Returns:
        The registered workflow classes
    """
    registered = [
        purge_drafts.register_workflow(hatchet, services.purge_engine, config),
        reconcile_index.register_workflow(hatchet, services.reconciler, config),
    ]
    for workflow_class in registered:
        logger.info("workflow_registered", registered_class=workflow_class.__name__)
    return registered


async def run_worker() -> None:
    """Build services, register workflows and process jobs until shutdown.

    Handles graceful shutdown on SIGINT/SIGTERM.
    """
    settings = get_settings()
    configure_observability(settings)
    hatchet_config = settings.jobs.hatchet

    logger.info(
        "worker_starting",
        server_url=hatchet_config.server_url,
        concurrency=hatchet_config.worker_concurrency,
    )

    hatchet = HatchetClient(hatchet_config).get_client()
    if hatchet is None:
        raise RuntimeError("Hatchet is disabled or unavailable; cannot start worker")

    services = await build_services(settings)
    try:
        worker = hatchet.worker(WORKER_NAME, max_runs=hatchet_config.worker_concurrency)
        for workflow_class in register_workflows(hatchet, services, hatchet_config):
            worker.register_workflow(workflow_class())

        shutdown_event = asyncio.Event()

        def signal_handler(sig: int, frame: Any) -> None:  # noqa: ARG001
            logger.info("shutdown_signal_received", signal=signal.Signals(sig).name)
            shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        # worker.start() blocks, so run it off the event loop
        worker_task = asyncio.create_task(asyncio.to_thread(worker.start))
        logger.info("worker_ready", workflow_count=2)

        await shutdown_event.wait()
        logger.info("shutting_down_worker")
        worker_task.cancel()
    finally:
        await services.close()
        logger.info("worker_stopped")


def main() -> None:
    """CLI entrypoint for the worker.

    Registered as a console script in pyproject.toml:
        [project.scripts]
        orderledger-worker = "orderledger.jobs.worker:main"
    """
    try:
        asyncio.run(run_worker())
    except KeyboardInterrupt:
        logger.info("worker_interrupted")
        sys.exit(0)
    except Exception as e:
        logger.error("worker_startup_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    main()
