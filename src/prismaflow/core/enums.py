"""
prismaflow Core Enumerations

Vocabulary shared by the candidate store, the ledger and the HTTP layer.
"""

from enum import Enum


class RecordSource(str, Enum):
    """Bibliographic source a record was fetched from."""

    SEMANTIC_SCHOLAR = "semantic_scholar"
    PUBMED = "pubmed"
    CROSSREF = "crossref"
    EUROPE_PMC = "europe_pmc"


class Decision(str, Enum):
    """Screening decision for a candidate."""

    INCLUDE = "include"
    EXCLUDE = "exclude"
    UNCERTAIN = "uncertain"


class ScreeningStatus(str, Enum):
    """Whether a candidate has been looked at by a screener (human or AI)."""

    UNSCREENED = "unscreened"
    SCREENED = "screened"


class CandidateState(str, Enum):
    """Lifecycle state derived from decision and confirmation.

    pending -> screened_unconfirmed -> confirmed
    """

    PENDING = "pending"
    SCREENED_UNCONFIRMED = "screened_unconfirmed"
    CONFIRMED = "confirmed"


class Confidence(str, Enum):
    """Confidence attached to a screening decision."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class QualityStatus(str, Enum):
    """Quality appraisal status of an included study."""

    PENDING = "pending"
    COMPLETED = "completed"


class QualityLevel(str, Enum):
    """Overall quality level from an appraisal checklist."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class ChecklistType(str, Enum):
    """Appraisal checklist used for a quality assessment."""

    CASP = "CASP"
    AMSTAR = "AMSTAR"
    STROBE = "STROBE"


class ExtractionStatus(str, Enum):
    """Data extraction status of an included study."""

    PENDING = "pending"
    EXTRACTED = "extracted"
    VERIFIED = "verified"
