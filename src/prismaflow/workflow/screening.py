"""
Screening Service

Applies a batch of AI classifications to a project's pending candidates and
reports screening-phase completion.

Classification policy:
- include / exclude: confirmed immediately, carrying the AI justification
- uncertain: recorded as an automated decision, left for a human
- pending candidates the classifier did not answer: recorded as uncertain
"""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from prismaflow.config import Settings, get_settings
from prismaflow.core.enums import Decision
from prismaflow.core.schemas import (
    Candidate,
    ClassificationResult,
    ScreeningChecklist,
    ScreeningSummary,
    utcnow,
)
from prismaflow.storage.document_store import DocumentStore
from prismaflow.workflow.candidates import CandidateStore
from prismaflow.workflow.decisions import DecisionStateMachine
from prismaflow.workflow.ledger import PrismaLedger

logger = logging.getLogger(__name__)


class ScreeningService:
    """AI screening batches and the screening checklist."""

    def __init__(self, store: DocumentStore, settings: Settings | None = None) -> None:
        self._candidates = CandidateStore(store)
        self._ledger = PrismaLedger(store)
        self._decisions = DecisionStateMachine(store, self._candidates, self._ledger)
        self._settings = (settings or get_settings()).screening

    async def _apply_one(
        self, project_id: str, candidate: Candidate, result: ClassificationResult
    ) -> None:
        if result.decision is Decision.UNCERTAIN:
            await self._decisions.record_automated_decision(
                project_id,
                candidate.id,
                result.decision,
                result.justification,
                subtopic=result.subtopic,
                confidence=self._settings.uncertain_confidence,
            )
            return
        await self._decisions.confirm_decision(
            project_id,
            candidate.id,
            result.decision,
            updates={
                "reason": result.justification,
                "ai_justification": result.justification,
                "ai_subtopic": result.subtopic,
                "confidence": self._settings.confirmed_confidence,
                "processed_at": utcnow(),
            },
        )

    async def apply_classifications(
        self, project_id: str, results: Sequence[ClassificationResult]
    ) -> ScreeningSummary:
        """
        Apply classifier output to the project's pending candidates.

        Results for unknown or already-confirmed candidates, and repeated
        results for the same candidate, are ignored and reported in
        ``ignored_ids``.
        """
        pending = {c.id: c for c in await self._candidates.list_pending(project_id)}
        summary = ScreeningSummary()
        answered: dict[str, ClassificationResult] = {}

        for result in results:
            if result.id not in pending or result.id in answered:
                summary.ignored_ids.append(result.id)
                continue
            answered[result.id] = result

        fallback = [
            ClassificationResult(
                id=candidate_id,
                decision=Decision.UNCERTAIN,
                justification=self._settings.fallback_justification,
            )
            for candidate_id in pending
            if candidate_id not in answered
        ]

        work = [*answered.values(), *fallback]
        await asyncio.gather(
            *(self._apply_one(project_id, pending[result.id], result) for result in work)
        )

        for result in work:
            setattr(summary, result.decision.value, getattr(summary, result.decision.value) + 1)

        logger.info(
            "AI screening for project %s: include=%d exclude=%d uncertain=%d (fallback=%d, ignored=%d)",
            project_id,
            summary.include,
            summary.exclude,
            summary.uncertain,
            len(fallback),
            len(summary.ignored_ids),
        )
        return summary

    async def checklist(self, project_id: str) -> ScreeningChecklist:
        """Screening-phase completion checks for a project."""
        candidates = await self._candidates.list(project_id)
        counters = await self._ledger.get_counters(project_id)
        pending = [c for c in candidates if not c.user_confirmed]

        return ScreeningChecklist(
            duplicates_managed=counters.identified > 0
            and counters.identified >= counters.duplicates,
            screening_complete=bool(candidates) and not pending,
            exclusions_documented=all(
                bool(c.reason) for c in candidates if c.decision is Decision.EXCLUDE
            ),
            prisma_ready=counters.screened > 0,
            pending_count=len(pending),
            warnings=counters.consistency_warnings(),
        )
