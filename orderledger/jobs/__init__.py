"""Background job infrastructure.

Hatchet-based scheduling for:
- Draft purge
- Version index reconciliation

Usage:
    from orderledger.jobs import HatchetClient
    from orderledger.jobs.workflows import PurgeDraftVersionsWorkflow

    client = HatchetClient(config)
    # Register workflows with Hatchet via orderledger.jobs.worker
"""

from orderledger.jobs.client import HatchetClient

__all__ = ["HatchetClient"]
