"""
prismaflow Core Schemas

Pydantic models for the screening workflow: incoming external papers,
candidates, the included-studies projection and the PRISMA ledger.

Key Design Principles:
1. Schemas are immutable (frozen=True); state changes produce copies
2. Counters are non-negative and validated as such
3. Lifecycle state is derived from decision + confirmation, never stored
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from prismaflow.core.enums import (
    CandidateState,
    ChecklistType,
    Confidence,
    Decision,
    ExtractionStatus,
    QualityLevel,
    QualityStatus,
    RecordSource,
    ScreeningStatus,
)


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


# =============================================================================
# EXTERNAL PAPER - Search Collaborator Output
# =============================================================================


class ExternalPaper(BaseModel):
    """
    Unprocessed record fetched from an external bibliographic source.

    Owned by the search collaborator; carries bibliographic fields only.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Source-stable identifier")
    source: RecordSource
    title: str = ""
    authors: list[str] = Field(default_factory=list)
    year: int | None = Field(default=None, ge=1000, le=2100)
    abstract: str = ""
    doi: str | None = None
    url: str = ""
    is_open_access: bool = False
    citation_count: int | None = Field(default=None, ge=0)


# =============================================================================
# CANDIDATE - Record Under Review
# =============================================================================


class Candidate(ExternalPaper):
    """
    Bibliographic record adopted into a project's working set.

    Invariants:
    - user_confirmed and decision == include implies an IncludedStudy exists
    - state is derived: pending -> screened_unconfirmed -> confirmed
    """

    project_id: str
    dedup_key: str | None = Field(
        default=None, description="Cached dedup key; backfilled on ingestion when absent"
    )

    decision: Decision | None = None
    user_confirmed: bool = False
    screening_status: ScreeningStatus = ScreeningStatus.UNSCREENED
    reason: str | None = None
    ai_justification: str | None = None
    ai_subtopic: str | None = None
    confidence: Confidence | None = None
    processed_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def state(self) -> CandidateState:
        """Lifecycle state derived from decision and confirmation."""
        if self.user_confirmed:
            return CandidateState.CONFIRMED
        if self.decision is None:
            return CandidateState.PENDING
        return CandidateState.SCREENED_UNCONFIRMED

    @classmethod
    def from_external(cls, project_id: str, paper: ExternalPaper, dedup_key: str) -> Candidate:
        """Build a pending candidate from an external paper."""
        return cls(
            **paper.model_dump(),
            project_id=project_id,
            dedup_key=dedup_key,
        )


# =============================================================================
# INCLUDED STUDY - Projection Of Included Candidates
# =============================================================================


class IncludedStudy(Candidate):
    """
    Denormalised copy of a candidate confirmed as include.

    Same id as the source candidate. Carries the status flags consumed by
    quality appraisal and data extraction.
    """

    confirmed_at: datetime = Field(default_factory=utcnow)
    quality_status: QualityStatus = QualityStatus.PENDING
    quality_level: QualityLevel | None = None
    quality_score: float | None = None
    extraction_status: ExtractionStatus = ExtractionStatus.PENDING

    @classmethod
    def from_candidate(
        cls, candidate: Candidate, confirmed_at: datetime | None = None
    ) -> IncludedStudy:
        """Project a candidate into the included-studies collection."""
        data = candidate.model_dump(exclude={"state"})
        data["decision"] = Decision.INCLUDE
        return cls(**data, confirmed_at=confirmed_at or utcnow())


# =============================================================================
# QUALITY ASSESSMENT
# =============================================================================


class QualityCriterion(BaseModel):
    """Single checklist question and its answer."""

    model_config = ConfigDict(frozen=True)

    id: str
    question: str
    answer: Literal["Yes", "Partial", "No"]
    notes: str | None = None


class QualityAssessment(BaseModel):
    """Quality appraisal of one included study."""

    model_config = ConfigDict(frozen=True)

    id: str
    study_id: str
    study_type: str
    checklist_type: ChecklistType
    criteria: list[QualityCriterion] = Field(default_factory=list)
    total_score: float = Field(..., ge=0.0)
    quality_level: QualityLevel
    assessed_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# PRISMA LEDGER
# =============================================================================


COUNTER_FIELDS: tuple[str, ...] = (
    "identified",
    "duplicates",
    "without_abstract",
    "screened",
    "included",
)


class PrismaCounters(BaseModel):
    """PRISMA flow-diagram totals for one project."""

    model_config = ConfigDict(frozen=True)

    identified: int = Field(default=0, ge=0)
    duplicates: int = Field(default=0, ge=0)
    without_abstract: int = Field(default=0, ge=0)
    screened: int = Field(default=0, ge=0)
    included: int = Field(default=0, ge=0)

    @classmethod
    def from_document(cls, data: dict[str, Any] | None) -> PrismaCounters:
        """Build counters from a stored document, defaulting missing fields to 0."""
        data = data or {}
        return cls(**{name: max(int(data.get(name) or 0), 0) for name in COUNTER_FIELDS})

    def consistency_warnings(self) -> list[str]:
        """Expected-but-unenforced flow relations that currently do not hold."""
        warnings = []
        if self.identified < self.duplicates + self.without_abstract:
            warnings.append(
                f"identified ({self.identified}) < duplicates + without_abstract "
                f"({self.duplicates + self.without_abstract})"
            )
        if self.screened > self.identified:
            warnings.append(f"screened ({self.screened}) > identified ({self.identified})")
        if self.included > self.screened:
            warnings.append(f"included ({self.included}) > screened ({self.screened})")
        return warnings


class PrismaDelta(BaseModel):
    """Signed changes to apply to the PRISMA counters."""

    model_config = ConfigDict(frozen=True)

    identified: int = 0
    duplicates: int = 0
    without_abstract: int = 0
    screened: int = 0
    included: int = 0

    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in COUNTER_FIELDS)

    def increments(self) -> dict[str, int]:
        """Non-zero deltas keyed by counter name."""
        return {name: getattr(self, name) for name in COUNTER_FIELDS if getattr(self, name)}


# =============================================================================
# OPERATION RESULTS
# =============================================================================


class IngestionResult(BaseModel):
    """Per-batch outcome of an ingestion call."""

    model_config = ConfigDict(frozen=True)

    saved: int = Field(default=0, ge=0)
    duplicates: int = Field(default=0, ge=0)
    without_abstract: int = Field(default=0, ge=0)
    failed_ids: list[str] = Field(default_factory=list)

    @property
    def total(self) -> int:
        """Papers classified by this batch, including failed writes."""
        return self.saved + self.duplicates + self.without_abstract + len(self.failed_ids)


class ClassificationResult(BaseModel):
    """Per-candidate output of the AI classification collaborator."""

    model_config = ConfigDict(frozen=True)

    id: str
    decision: Decision
    justification: str = ""
    subtopic: str | None = None


class ScreeningSummary(BaseModel):
    """Decision counts from one AI screening batch."""

    include: int = 0
    exclude: int = 0
    uncertain: int = 0
    ignored_ids: list[str] = Field(default_factory=list)


class ScreeningChecklist(BaseModel):
    """Screening-phase completion checks."""

    model_config = ConfigDict(frozen=True)

    duplicates_managed: bool
    screening_complete: bool
    exclusions_documented: bool
    prisma_ready: bool
    pending_count: int = Field(..., ge=0)
    warnings: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def can_generate_prisma(self) -> bool:
        return self.duplicates_managed and self.screening_complete and self.exclusions_documented

    @computed_field  # type: ignore[prop-decorator]
    @property
    def completed_tasks(self) -> int:
        return sum(
            [
                self.duplicates_managed,
                self.screening_complete,
                self.exclusions_documented,
                self.prisma_ready,
            ]
        )


# =============================================================================
# PROJECT
# =============================================================================


class Project(BaseModel):
    """Root document of a systematic review project."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    name: str = Field(..., min_length=1, max_length=300)
    description: str = ""
    template_used: str | None = None
    phases: dict[str, Any] = Field(
        default_factory=dict, description="Opaque per-phase state blobs keyed by phase"
    )
    completed_tasks: int = Field(default=0, ge=0)
    total_tasks: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ProjectAggregate(BaseModel):
    """Everything downstream phases read from a project in one call."""

    project: Project
    prisma: PrismaCounters
    included_studies: list[IncludedStudy] = Field(default_factory=list)
    quality_assessments: list[QualityAssessment] = Field(default_factory=list)
