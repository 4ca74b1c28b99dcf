"""
Batch Ingestion Pipeline

Adopts externally fetched papers into a project's candidate set.

Every offered paper is classified exactly once, in input order:
- blank abstract or the missing-abstract placeholder -> without_abstract
- dedup key or candidate id already stored, or claimed earlier in the
  batch -> duplicates
- otherwise -> saved as a new pending candidate

``identified`` is bumped by the full batch size on every call: each call is
a distinct search event in PRISMA bookkeeping, so re-ingesting the same set
adds zero candidates but still counts its records as identified duplicates.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from prismaflow.config import Settings, get_settings
from prismaflow.core.dedup import derive_key
from prismaflow.core.exceptions import PartialIngestionError, ProjectNotFoundError
from prismaflow.core.schemas import (
    Candidate,
    ExternalPaper,
    IngestionResult,
    PrismaDelta,
    utcnow,
)
from prismaflow.storage.document_store import DocumentStore, Precondition, SetDocument
from prismaflow.storage.paths import candidate_path, candidates_collection, project_path
from prismaflow.workflow.candidates import CandidateStore
from prismaflow.workflow.ledger import PrismaLedger

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Classifies and persists batches of external papers."""

    def __init__(
        self,
        store: DocumentStore,
        ledger: PrismaLedger | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._candidates = CandidateStore(store)
        self._ledger = ledger or PrismaLedger(store)
        settings = settings or get_settings()
        self._placeholder = settings.ingestion.missing_abstract_placeholder.strip()
        self._max_concurrent_writes = settings.ingestion.max_concurrent_writes

    def has_abstract(self, paper: ExternalPaper) -> bool:
        abstract = (paper.abstract or "").strip()
        return bool(abstract) and abstract != self._placeholder

    async def _existing_keys(
        self, project_id: str
    ) -> tuple[set[str], set[str], list[SetDocument]]:
        """Dedup keys and ids of stored candidates, plus backfills for uncached keys."""
        keys: set[str] = set()
        ids: set[str] = set()
        backfills: list[SetDocument] = []
        for doc_id, data in await self._store.list_collection(candidates_collection(project_id)):
            candidate_id = data.get("id") or doc_id
            key = data.get("dedup_key") or derive_key({**data, "id": candidate_id})
            keys.add(key)
            ids.add(candidate_id)
            if not data.get("dedup_key"):
                path = candidate_path(project_id, candidate_id)
                backfills.append(SetDocument(path, {"dedup_key": key}, merge=True))
        return keys, ids, backfills

    async def _persist(self, candidates: list[Candidate]) -> list[BaseException | None]:
        """Write candidates concurrently; one entry per candidate (None on success)."""
        semaphore = asyncio.Semaphore(self._max_concurrent_writes)

        async def write(candidate: Candidate) -> None:
            async with semaphore:
                await self._candidates.save(candidate)

        results = await asyncio.gather(
            *(write(candidate) for candidate in candidates), return_exceptions=True
        )
        for outcome in results:
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome
        return list(results)

    async def ingest(self, project_id: str, papers: Sequence[ExternalPaper]) -> IngestionResult:
        """
        Classify ``papers`` against the project's candidates and store new ones.

        Args:
            project_id: Target project.
            papers: Records offered by the search collaborator.

        Returns:
            Counts of saved, duplicate and missing-abstract papers.

        Raises:
            ProjectNotFoundError: The project does not exist.
            PartialIngestionError: Some candidate writes failed. The ledger
                delta was still applied; the error carries the actual result.
            StorageError: Reading candidates, backfilling keys, touching the
                project or updating the ledger failed.
        """
        if not papers:
            return IngestionResult()

        if await self._store.get(project_path(project_id)) is None:
            raise ProjectNotFoundError(project_id)

        existing_keys, existing_ids, backfills = await self._existing_keys(project_id)

        batch_keys: set[str] = set()
        batch_ids: set[str] = set()
        new_candidates: list[Candidate] = []
        duplicates = 0
        without_abstract = 0

        for paper in papers:
            if not self.has_abstract(paper):
                without_abstract += 1
                continue
            key = derive_key(paper)
            # A known id is the same record even if its key changed since (e.g. DOI added)
            seen = key in existing_keys or key in batch_keys
            if seen or paper.id in existing_ids or paper.id in batch_ids:
                duplicates += 1
                continue
            batch_keys.add(key)
            batch_ids.add(paper.id)
            new_candidates.append(Candidate.from_external(project_id, paper, key))

        outcomes = await self._persist(new_candidates)
        failed = [
            (candidate, outcome)
            for candidate, outcome in zip(new_candidates, outcomes)
            if outcome is not None
        ]

        if backfills:
            await self._store.commit(backfills)
            logger.info("Backfilled %d dedup key(s) in project %s", len(backfills), project_id)

        path = project_path(project_id)
        await self._store.commit(
            [Precondition(path), SetDocument(path, {"updated_at": utcnow().isoformat()}, merge=True)]
        )
        await self._ledger.apply_delta(
            project_id,
            PrismaDelta(
                identified=len(papers),
                duplicates=duplicates,
                without_abstract=without_abstract,
            ),
        )

        result = IngestionResult(
            saved=len(new_candidates) - len(failed),
            duplicates=duplicates,
            without_abstract=without_abstract,
            failed_ids=[candidate.id for candidate, _ in failed],
        )
        logger.info(
            "Ingested %d paper(s) into project %s: saved=%d duplicates=%d without_abstract=%d failed=%d",
            len(papers),
            project_id,
            result.saved,
            result.duplicates,
            result.without_abstract,
            len(failed),
        )

        if failed:
            errors = [f"{candidate.id}: {outcome}" for candidate, outcome in failed]
            logger.error("Candidate writes failed for project %s: %s", project_id, errors)
            raise PartialIngestionError(project_id, result, errors)
        return result
