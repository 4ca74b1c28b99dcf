"""
Tests for the candidate store.

Tests:
1. Reads and ordering
2. Annotation-only updates and dedup key refresh
3. Quality assessments against included studies
"""

import asyncio

import pytest

from prismaflow.core.enums import ChecklistType, Confidence, QualityLevel, QualityStatus
from prismaflow.core.exceptions import (
    CandidateNotFoundError,
    DocumentNotFoundError,
    ValidationError,
)
from prismaflow.core.schemas import Candidate, QualityAssessment
from prismaflow.workflow import CandidateStore, DecisionStateMachine


@pytest.fixture
def candidates(memory_store) -> CandidateStore:
    return CandidateStore(memory_store)


@pytest.fixture
def stored(candidates, project_id, make_paper) -> Candidate:
    paper = make_paper("c1", title="Original Title", authors=["Lee K"], year=2020)
    candidate = Candidate.from_external(project_id, paper, "title:originaltitle|author:leek|year:2020")
    asyncio.run(candidates.save(candidate))
    return candidate


def assessment(study_id: str, level: QualityLevel = QualityLevel.MEDIUM) -> QualityAssessment:
    return QualityAssessment(
        id=f"qa-{study_id}",
        study_id=study_id,
        study_type="cohort",
        checklist_type=ChecklistType.STROBE,
        total_score=14,
        quality_level=level,
    )


class TestReads:
    """get / list / list_pending."""

    def test_get(self, candidates, stored, project_id):
        assert asyncio.run(candidates.get(project_id, "c1")) == stored

    def test_get_missing(self, candidates, project_id):
        with pytest.raises(CandidateNotFoundError):
            asyncio.run(candidates.get(project_id, "nope"))

    def test_list_pending_excludes_confirmed(
        self, candidates, memory_store, project_id, make_paper, stored
    ):
        other = Candidate.from_external(project_id, make_paper("c2", doi="10.1/c2"), "doi:10.1/c2")
        asyncio.run(candidates.save(other))
        asyncio.run(DecisionStateMachine(memory_store).confirm_decision(project_id, "c1", "exclude"))

        assert [c.id for c in asyncio.run(candidates.list(project_id))] == ["c1", "c2"]
        assert [c.id for c in asyncio.run(candidates.list_pending(project_id))] == ["c2"]


class TestUpdate:
    """Annotation-only updates."""

    def test_updates_annotation_fields(self, candidates, stored, project_id):
        updated = asyncio.run(
            candidates.update(project_id, "c1", {"ai_subtopic": "safety", "confidence": "high"})
        )
        assert updated.ai_subtopic == "safety"
        assert updated.confidence is Confidence.HIGH
        assert asyncio.run(candidates.get(project_id, "c1")).ai_subtopic == "safety"

    def test_key_refreshed_when_bibliographic_field_changes(self, candidates, stored, project_id):
        updated = asyncio.run(candidates.update(project_id, "c1", {"doi": "10.9/NEW"}))
        assert updated.dedup_key == "doi:10.9/new"
        assert asyncio.run(candidates.get(project_id, "c1")).dedup_key == "doi:10.9/new"

    def test_key_kept_for_other_fields(self, candidates, stored, project_id):
        updated = asyncio.run(candidates.update(project_id, "c1", {"reason": "noted"}))
        assert updated.dedup_key == stored.dedup_key

    @pytest.mark.parametrize("field", ["decision", "user_confirmed", "screening_status", "id"])
    def test_workflow_fields_rejected(self, candidates, stored, project_id, field):
        with pytest.raises(ValidationError):
            asyncio.run(candidates.update(project_id, "c1", {field: "include"}))

    def test_invalid_value_rejected(self, candidates, stored, project_id):
        with pytest.raises(ValidationError):
            asyncio.run(candidates.update(project_id, "c1", {"year": 99}))

    def test_update_missing(self, candidates, project_id):
        with pytest.raises(CandidateNotFoundError):
            asyncio.run(candidates.update(project_id, "nope", {"reason": "x"}))


class TestQualityAssessments:
    """Appraisals stored against the included projection."""

    def test_marks_study_assessed(self, candidates, memory_store, stored, project_id):
        asyncio.run(DecisionStateMachine(memory_store).confirm_decision(project_id, "c1", "include"))
        asyncio.run(candidates.save_quality_assessment(project_id, assessment("c1", QualityLevel.LOW)))

        study = asyncio.run(candidates.get_included(project_id, "c1"))
        assert study.quality_status is QualityStatus.COMPLETED
        assert study.quality_level is QualityLevel.LOW
        assert study.quality_score == 14
        assert [a.id for a in asyncio.run(candidates.list_quality_assessments(project_id))] == [
            "qa-c1"
        ]

    def test_requires_included_study(self, candidates, stored, project_id):
        with pytest.raises(DocumentNotFoundError):
            asyncio.run(candidates.save_quality_assessment(project_id, assessment("c1")))
        assert asyncio.run(candidates.list_quality_assessments(project_id)) == []
