"""
PRISMA Counter Ledger

Per-project flow-diagram totals stored in ``projects/{id}/prisma/stats``.

Deltas are applied with the store's atomic increment, so concurrent
ingestions and confirmations cannot lose each other's updates. Counters are
floored at zero. Cross-field relations (``included <= screened`` and so on)
are not enforced here; see ``PrismaCounters.consistency_warnings``.
"""

from __future__ import annotations

import logging

from prismaflow.core.schemas import COUNTER_FIELDS, PrismaCounters, PrismaDelta
from prismaflow.storage.document_store import DocumentStore, IncrementFields, SetDocument
from prismaflow.storage.paths import prisma_stats_path

logger = logging.getLogger(__name__)


class PrismaLedger:
    """Reads and updates the PRISMA counters of a project."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def delta_ops(self, project_id: str, delta: PrismaDelta) -> list[IncrementFields]:
        """Write operations applying ``delta``; empty when there is nothing to do.

        Used to fold a counter update into a larger atomic batch.
        """
        if delta.is_empty():
            return []
        return [IncrementFields(prisma_stats_path(project_id), delta.increments(), floor=0)]

    async def apply_delta(self, project_id: str, delta: PrismaDelta) -> None:
        """
        Add ``delta`` to the project's counters.

        An all-zero delta returns without touching the store.

        Raises:
            StorageError: The increment could not be persisted.
        """
        ops = self.delta_ops(project_id, delta)
        if not ops:
            return
        await self._store.commit(ops)
        logger.debug("Applied PRISMA delta %s to project %s", ops[0].deltas, project_id)

    async def get_counters(self, project_id: str) -> PrismaCounters:
        """Current counters, all zero when no stats document exists yet."""
        return PrismaCounters.from_document(await self._store.get(prisma_stats_path(project_id)))

    async def set_counters(self, project_id: str, counters: PrismaCounters) -> None:
        """Overwrite the counters (manual correction from the PRISMA editor)."""
        await self._store.set(
            prisma_stats_path(project_id),
            {name: getattr(counters, name) for name in COUNTER_FIELDS},
            merge=True,
        )
        logger.info("PRISMA counters of project %s overwritten: %s", project_id, counters)
