"""
Candidate Store

Persistence for a project's candidates, its included-studies projection and
the quality assessments recorded against included studies.

Workflow fields (decision, user_confirmed, screening_status) are only written
through DecisionStateMachine; ``update`` accepts annotation fields only.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from prismaflow.core.dedup import derive_key
from prismaflow.core.enums import QualityStatus
from prismaflow.core.exceptions import CandidateNotFoundError, ValidationError
from prismaflow.core.schemas import Candidate, IncludedStudy, QualityAssessment
from prismaflow.storage.document_store import DocumentStore, Precondition, SetDocument
from prismaflow.storage.paths import (
    candidate_path,
    candidates_collection,
    included_collection,
    included_path,
    quality_collection,
    quality_path,
)

logger = logging.getLogger(__name__)

# Fields callers may change outside the decision lifecycle
ANNOTATION_FIELDS = frozenset(
    {
        "title",
        "authors",
        "year",
        "abstract",
        "doi",
        "url",
        "is_open_access",
        "citation_count",
        "reason",
        "ai_justification",
        "ai_subtopic",
        "confidence",
        "processed_at",
    }
)

# Annotation fields that feed the dedup key
_KEY_FIELDS = frozenset({"title", "authors", "year", "doi"})


def dump_candidate(candidate: Candidate) -> dict[str, Any]:
    """JSON document body for a candidate or included study."""
    return candidate.model_dump(mode="json", exclude={"state"})


def _load(model: type[Candidate], doc_id: str, data: dict[str, Any]) -> Any:
    return model.model_validate({**data, "id": data.get("id") or doc_id})


class CandidateStore:
    """Reads and writes candidates and their included-study projection."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    # ==================== Candidates ====================

    async def read(self, project_id: str, candidate_id: str) -> tuple[dict[str, Any], Candidate]:
        """Raw stored document and parsed candidate.

        Raises:
            CandidateNotFoundError: No such candidate.
        """
        raw = await self._store.get(candidate_path(project_id, candidate_id))
        if raw is None:
            raise CandidateNotFoundError(project_id, candidate_id)
        return raw, _load(Candidate, candidate_id, raw)

    async def get(self, project_id: str, candidate_id: str) -> Candidate:
        _, candidate = await self.read(project_id, candidate_id)
        return candidate

    async def list(self, project_id: str) -> list[Candidate]:
        """All candidates of a project, oldest first."""
        docs = await self._store.list_collection(candidates_collection(project_id))
        candidates = [_load(Candidate, doc_id, data) for doc_id, data in docs]
        return sorted(candidates, key=lambda c: (c.created_at, c.id))

    async def list_pending(self, project_id: str) -> list[Candidate]:
        """Candidates not yet confirmed by a user."""
        return [c for c in await self.list(project_id) if not c.user_confirmed]

    def save_op(self, candidate: Candidate) -> SetDocument:
        return SetDocument(
            candidate_path(candidate.project_id, candidate.id),
            dump_candidate(candidate),
            merge=True,
        )

    async def save(self, candidate: Candidate) -> None:
        await self._store.commit([self.save_op(candidate)])

    async def update(
        self, project_id: str, candidate_id: str, updates: dict[str, Any]
    ) -> Candidate:
        """
        Merge annotation fields into a stored candidate.

        Changing a bibliographic field that feeds the dedup key refreshes the
        cached key.

        Raises:
            ValidationError: A workflow field or invalid value was supplied.
            CandidateNotFoundError: No such candidate.
        """
        _, candidate = await self.read(project_id, candidate_id)
        updated = self.apply_annotations(candidate, updates)
        fields = {k: v for k, v in dump_candidate(updated).items() if k in updates}
        if _KEY_FIELDS & updates.keys():
            fields["dedup_key"] = derive_key(updated)

        path = candidate_path(project_id, candidate_id)
        await self._store.commit(
            [
                Precondition(path),
                SetDocument(path, fields, merge=True),
            ]
        )
        return updated.model_copy(update={"dedup_key": fields.get("dedup_key", updated.dedup_key)})

    @staticmethod
    def apply_annotations(candidate: Candidate, updates: dict[str, Any]) -> Candidate:
        """Validated copy of ``candidate`` with annotation ``updates`` applied."""
        forbidden = sorted(set(updates) - ANNOTATION_FIELDS)
        if forbidden:
            raise ValidationError(
                "Only annotation fields can be updated directly",
                {"candidate_id": candidate.id, "fields": forbidden},
            )
        try:
            return Candidate.model_validate({**dump_candidate(candidate), **updates})
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid candidate update: {e.error_count()} error(s)",
                {
                    "candidate_id": candidate.id,
                    "errors": e.errors(
                        include_url=False, include_context=False, include_input=False
                    ),
                },
            ) from e

    # ==================== Included Studies ====================

    async def get_included(self, project_id: str, candidate_id: str) -> IncludedStudy | None:
        data = await self._store.get(included_path(project_id, candidate_id))
        return _load(IncludedStudy, candidate_id, data) if data is not None else None

    async def list_included(self, project_id: str) -> list[IncludedStudy]:
        """Included-studies projection, in confirmation order."""
        docs = await self._store.list_collection(included_collection(project_id))
        studies = [_load(IncludedStudy, doc_id, data) for doc_id, data in docs]
        return sorted(studies, key=lambda s: (s.confirmed_at, s.id))

    # ==================== Quality Assessments ====================

    async def save_quality_assessment(
        self, project_id: str, assessment: QualityAssessment
    ) -> None:
        """
        Store an appraisal and mark its included study as assessed.

        Both writes land in one batch; the study must still be included.

        Raises:
            DocumentNotFoundError: The study is not in the included projection.
        """
        study_path = included_path(project_id, assessment.study_id)
        await self._store.commit(
            [
                Precondition(study_path),
                SetDocument(
                    quality_path(project_id, assessment.id),
                    assessment.model_dump(mode="json"),
                    merge=True,
                ),
                SetDocument(
                    study_path,
                    {
                        "quality_status": QualityStatus.COMPLETED.value,
                        "quality_level": assessment.quality_level.value,
                        "quality_score": assessment.total_score,
                    },
                    merge=True,
                ),
            ]
        )
        logger.info(
            "Quality assessment %s saved for study %s (%s)",
            assessment.id,
            assessment.study_id,
            assessment.quality_level.value,
        )

    async def list_quality_assessments(self, project_id: str) -> list[QualityAssessment]:
        docs = await self._store.list_collection(quality_collection(project_id))
        return [QualityAssessment.model_validate(data) for _, data in docs]
