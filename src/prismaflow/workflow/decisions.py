"""
Decision State Machine

Drives a candidate through the screening lifecycle:

    pending --record_automated_decision--> screened_unconfirmed
    pending | screened_unconfirmed | confirmed --confirm_decision--> confirmed

Confirmation is where the PRISMA ledger and the included-studies projection
change. Screening is counted once per candidate (first confirmation), while
``included`` follows the current decision on every re-confirmation.

Each transition is committed as a single batch guarded by a precondition on
the candidate's decision and confirmation flag as read, so the candidate,
the counters and the projection cannot diverge.
"""

from __future__ import annotations

import logging
from typing import Any

from prismaflow.core.enums import CandidateState, Confidence, Decision, ScreeningStatus
from prismaflow.core.exceptions import InvalidTransitionError
from prismaflow.core.schemas import Candidate, IncludedStudy, PrismaDelta, utcnow
from prismaflow.storage.document_store import (
    DeleteDocument,
    DocumentStore,
    Precondition,
    SetDocument,
    WriteOp,
)
from prismaflow.storage.paths import candidate_path, included_path
from prismaflow.workflow.candidates import CandidateStore, dump_candidate
from prismaflow.workflow.ledger import PrismaLedger

logger = logging.getLogger(__name__)

_WORKFLOW_FIELDS = ("decision", "user_confirmed", "screening_status")


def decision_delta(
    was_confirmed: bool, previous: Decision | None, decision: Decision
) -> PrismaDelta:
    """
    Ledger change caused by confirming ``decision``.

    Args:
        was_confirmed: Whether the candidate was already user-confirmed.
        previous: Decision held before this confirmation.
        decision: Decision being confirmed.
    """
    if not was_confirmed:
        return PrismaDelta(screened=1, included=1 if decision is Decision.INCLUDE else 0)
    if previous is decision:
        return PrismaDelta()
    if previous is Decision.INCLUDE:
        return PrismaDelta(included=-1)
    if decision is Decision.INCLUDE:
        return PrismaDelta(included=1)
    return PrismaDelta()


def _snapshot(raw: dict[str, Any]) -> dict[str, Any]:
    return {"decision": raw.get("decision"), "user_confirmed": raw.get("user_confirmed")}


class DecisionStateMachine:
    """Applies screening decisions to stored candidates."""

    def __init__(
        self,
        store: DocumentStore,
        candidates: CandidateStore | None = None,
        ledger: PrismaLedger | None = None,
    ) -> None:
        self._store = store
        self._candidates = candidates or CandidateStore(store)
        self._ledger = ledger or PrismaLedger(store)

    async def record_automated_decision(
        self,
        project_id: str,
        candidate_id: str,
        decision: Decision | str,
        justification: str,
        subtopic: str | None = None,
        confidence: Confidence | str | None = None,
    ) -> Candidate:
        """
        Record an unconfirmed (automation) decision.

        ``user_confirmed`` is left untouched; counters and projection are not
        affected.

        Raises:
            InvalidTransitionError: The candidate is already confirmed.
            CandidateNotFoundError: No such candidate.
            ConcurrentModificationError: The candidate changed while deciding.
        """
        decision = Decision(decision)
        raw, candidate = await self._candidates.read(project_id, candidate_id)
        if candidate.state is CandidateState.CONFIRMED:
            raise InvalidTransitionError(
                candidate_id, candidate.state.value, "record an automated decision for"
            )

        if confidence is None:
            confidence = Confidence.LOW if decision is Decision.UNCERTAIN else Confidence.MEDIUM
        updated = candidate.model_copy(
            update={
                "decision": decision,
                "reason": justification,
                "ai_justification": justification,
                "ai_subtopic": subtopic,
                "confidence": Confidence(confidence),
                "screening_status": ScreeningStatus.SCREENED,
                "processed_at": utcnow(),
            }
        )
        fields = dump_candidate(updated)
        path = candidate_path(project_id, candidate_id)
        await self._store.commit(
            [
                Precondition(path, _snapshot(raw)),
                SetDocument(
                    path,
                    {
                        key: fields[key]
                        for key in (
                            "decision",
                            "reason",
                            "ai_justification",
                            "ai_subtopic",
                            "confidence",
                            "screening_status",
                            "processed_at",
                        )
                    },
                    merge=True,
                ),
            ]
        )
        logger.debug(
            "Automated decision %s recorded for candidate %s", decision.value, candidate_id
        )
        return updated

    async def confirm_decision(
        self,
        project_id: str,
        candidate_id: str,
        decision: Decision | str,
        updates: dict[str, Any] | None = None,
    ) -> Candidate:
        """
        Confirm a decision for a candidate (user or system confirmation).

        Args:
            project_id: Owning project.
            candidate_id: Candidate to confirm.
            decision: Decision being confirmed.
            updates: Annotation fields (reason, ai_justification, ...) written
                together with the confirmation.

        Returns:
            The confirmed candidate.

        Raises:
            CandidateNotFoundError: No such candidate.
            ValidationError: ``updates`` names a non-annotation field.
            ConcurrentModificationError: The candidate changed while confirming.
        """
        decision = Decision(decision)
        raw, candidate = await self._candidates.read(project_id, candidate_id)
        was_confirmed = candidate.user_confirmed
        previous = candidate.decision

        annotated = CandidateStore.apply_annotations(candidate, updates or {})
        confirmed = annotated.model_copy(
            update={
                "decision": decision,
                "user_confirmed": True,
                "screening_status": ScreeningStatus.SCREENED,
            }
        )

        fields = dump_candidate(confirmed)
        written = {key: fields[key] for key in (*_WORKFLOW_FIELDS, *(updates or {}))}
        path = candidate_path(project_id, candidate_id)
        ops: list[WriteOp] = [
            Precondition(path, _snapshot(raw)),
            SetDocument(path, written, merge=True),
        ]

        delta = decision_delta(was_confirmed, previous, decision)
        ops.extend(self._ledger.delta_ops(project_id, delta))

        if decision is Decision.INCLUDE:
            # Every include confirmation restarts appraisal
            study = IncludedStudy.from_candidate(confirmed)
            ops.append(SetDocument(included_path(project_id, candidate_id), dump_candidate(study)))
        elif was_confirmed and previous is Decision.INCLUDE:
            ops.append(DeleteDocument(included_path(project_id, candidate_id)))

        await self._store.commit(ops)
        logger.info(
            "Candidate %s confirmed as %s (previous=%s, reconfirmation=%s, delta=%s)",
            candidate_id,
            decision.value,
            previous.value if previous else None,
            was_confirmed,
            delta.increments(),
        )
        return confirmed
