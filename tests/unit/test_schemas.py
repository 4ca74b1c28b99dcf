"""
Unit Tests for Core Schemas

Tests validation rules and invariants defined in schemas.py.
"""

import pytest
from pydantic import ValidationError

from prismaflow.core.enums import CandidateState, Decision, QualityStatus, RecordSource
from prismaflow.core.schemas import (
    Candidate,
    ExternalPaper,
    IncludedStudy,
    IngestionResult,
    PrismaCounters,
    PrismaDelta,
    ScreeningChecklist,
)


@pytest.fixture
def paper() -> ExternalPaper:
    return ExternalPaper(
        id="PMID:1",
        source=RecordSource.PUBMED,
        title="Effect of GLP-1 Agonists",
        authors=["Smith J"],
        year=2023,
        abstract="Results: HbA1c decreased.",
        doi="10.2337/dc23-0001",
    )


class TestExternalPaper:
    """Tests for ExternalPaper schema."""

    def test_defaults(self) -> None:
        paper = ExternalPaper(id="x", source="crossref")
        assert paper.source is RecordSource.CROSSREF
        assert paper.authors == []
        assert paper.abstract == ""
        assert paper.is_open_access is False

    def test_immutable(self, paper: ExternalPaper) -> None:
        with pytest.raises(ValidationError):
            paper.title = "Modified"

    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ExternalPaper(id="", source="pubmed")

    def test_year_bounds(self) -> None:
        with pytest.raises(ValidationError):
            ExternalPaper(id="x", source="pubmed", year=3000)

    def test_unknown_source_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ExternalPaper(id="x", source="scopus")


class TestCandidate:
    """Tests for Candidate state derivation."""

    def test_from_external_is_pending(self, paper: ExternalPaper) -> None:
        candidate = Candidate.from_external("p1", paper, "doi:10.2337/dc23-0001")
        assert candidate.state is CandidateState.PENDING
        assert candidate.project_id == "p1"
        assert candidate.title == paper.title
        assert candidate.decision is None

    def test_screened_unconfirmed(self, paper: ExternalPaper) -> None:
        candidate = Candidate.from_external("p1", paper, "k").model_copy(
            update={"decision": Decision.UNCERTAIN}
        )
        assert candidate.state is CandidateState.SCREENED_UNCONFIRMED

    def test_confirmed(self, paper: ExternalPaper) -> None:
        candidate = Candidate.from_external("p1", paper, "k").model_copy(
            update={"decision": Decision.EXCLUDE, "user_confirmed": True}
        )
        assert candidate.state is CandidateState.CONFIRMED

    def test_state_serialized(self, paper: ExternalPaper) -> None:
        dumped = Candidate.from_external("p1", paper, "k").model_dump(mode="json")
        assert dumped["state"] == "pending"


class TestIncludedStudy:
    """Tests for the included-study projection."""

    def test_from_candidate(self, paper: ExternalPaper) -> None:
        candidate = Candidate.from_external("p1", paper, "k").model_copy(
            update={"decision": Decision.INCLUDE, "user_confirmed": True, "reason": "RCT"}
        )
        study = IncludedStudy.from_candidate(candidate)
        assert study.id == candidate.id
        assert study.reason == "RCT"
        assert study.quality_status is QualityStatus.PENDING
        assert study.confirmed_at is not None


class TestPrismaCounters:
    """Tests for PRISMA counters and deltas."""

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PrismaCounters(identified=-1)

    def test_from_document_defaults(self) -> None:
        counters = PrismaCounters.from_document({"identified": 4, "screened": None})
        assert counters == PrismaCounters(identified=4)
        assert PrismaCounters.from_document(None) == PrismaCounters()

    def test_delta_is_empty(self) -> None:
        assert PrismaDelta().is_empty()
        assert not PrismaDelta(included=-1).is_empty()

    def test_delta_increments_drop_zeros(self) -> None:
        assert PrismaDelta(identified=3, included=-1).increments() == {
            "identified": 3,
            "included": -1,
        }


class TestIngestionResult:
    """Tests for IngestionResult."""

    def test_total(self) -> None:
        result = IngestionResult(saved=2, duplicates=1, without_abstract=1, failed_ids=["x"])
        assert result.total == 5


class TestScreeningChecklist:
    """Tests for derived checklist flags."""

    def test_can_generate_prisma(self) -> None:
        checklist = ScreeningChecklist(
            duplicates_managed=True,
            screening_complete=True,
            exclusions_documented=True,
            prisma_ready=False,
            pending_count=0,
        )
        assert checklist.can_generate_prisma is True
        assert checklist.completed_tasks == 3
        assert checklist.model_dump()["can_generate_prisma"] is True
