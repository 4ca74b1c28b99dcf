"""
prismaflow API Routes

FastAPI routes over the screening workflow core: projects, ingestion,
decisions, the included-studies projection and the PRISMA ledger.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from prismaflow import __version__
from prismaflow.config import get_settings
from prismaflow.core.enums import Confidence, Decision
from prismaflow.core.exceptions import (
    ConcurrentModificationError,
    ConfigurationError,
    DocumentNotFoundError,
    PartialIngestionError,
    PrismaFlowError,
    ProjectNotFoundError,
    StorageError,
    ValidationError,
    CandidateNotFoundError,
)
from prismaflow.core.schemas import (
    Candidate,
    ClassificationResult,
    ExternalPaper,
    IncludedStudy,
    IngestionResult,
    PrismaCounters,
    Project,
    ProjectAggregate,
    QualityAssessment,
    ScreeningChecklist,
    ScreeningSummary,
)
from prismaflow.logging_config import configure_logging
from prismaflow.storage import DocumentStore, create_store
from prismaflow.workflow import (
    CandidateStore,
    DecisionStateMachine,
    IngestionPipeline,
    PrismaLedger,
    ProjectStore,
    ScreeningService,
)

logger = logging.getLogger(__name__)

# =============================================================================
# REQUEST MODELS
# =============================================================================


class CreateProjectRequest(BaseModel):
    """Request to create a project."""

    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=300)
    description: str = ""
    template_used: str | None = None


class IngestRequest(BaseModel):
    """Papers selected from a federated search."""

    papers: list[ExternalPaper] = Field(default_factory=list)


class AutomatedDecisionRequest(BaseModel):
    """Unconfirmed decision produced by automation."""

    decision: Decision
    justification: str = ""
    subtopic: str | None = None
    confidence: Confidence | None = None


class ConfirmDecisionRequest(BaseModel):
    """User or system confirmation of a decision."""

    decision: Decision
    updates: dict[str, Any] = Field(
        default_factory=dict, description="Annotation fields written with the confirmation"
    )


class ClassificationBatchRequest(BaseModel):
    """AI classifier output for the project's pending candidates."""

    results: list[ClassificationResult] = Field(default_factory=list)


# =============================================================================
# STORE WIRING
# =============================================================================

# Global store instance (set via configure_store or at startup)
_store: Optional[DocumentStore] = None


def configure_store(store: Optional[DocumentStore]) -> None:
    """Configure the global DocumentStore.

    Call this before startup to inject a store (tests, embedding apps).
    If not configured, startup creates one from settings.
    """
    global _store
    _store = store


def get_store() -> DocumentStore:
    """Dependency returning the configured DocumentStore."""
    if _store is None:
        raise ConfigurationError("Document store is not configured")
    return _store


# =============================================================================
# ERROR MAPPING
# =============================================================================


def _status_for(error: PrismaFlowError) -> int:
    if isinstance(error, PartialIngestionError):
        return status.HTTP_207_MULTI_STATUS
    if isinstance(error, (ProjectNotFoundError, CandidateNotFoundError, DocumentNotFoundError)):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, ConcurrentModificationError):
        return status.HTTP_409_CONFLICT
    if isinstance(error, ValidationError):
        return 422
    if isinstance(error, StorageError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def handle_prismaflow_error(request: Request, error: PrismaFlowError) -> JSONResponse:
    """Translate core exceptions into HTTP responses."""
    code = _status_for(error)
    body: dict[str, Any] = {"detail": error.message, "error": type(error).__name__}
    if isinstance(error, PartialIngestionError):
        body["result"] = error.result.model_dump()
    elif code < 500:
        body["details"] = error.details
    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, error)
    return JSONResponse(status_code=code, content=jsonable_encoder(body))


# =============================================================================
# ROUTER
# =============================================================================

router = APIRouter(prefix="/api/v1", tags=["prismaflow"])


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__, "service": "prismaflow"}


# ==================== Projects ====================


@router.post("/projects", response_model=Project, status_code=status.HTTP_201_CREATED)
async def create_project(
    request: CreateProjectRequest, store: DocumentStore = Depends(get_store)
) -> Project:
    return await ProjectStore(store).create_project(
        request.user_id,
        request.name,
        description=request.description,
        template_used=request.template_used,
    )


@router.get("/projects", response_model=list[Project])
async def list_projects(user_id: str, store: DocumentStore = Depends(get_store)) -> list[Project]:
    return await ProjectStore(store).list_user_projects(user_id)


@router.get("/projects/{project_id}", response_model=Project)
async def get_project(project_id: str, store: DocumentStore = Depends(get_store)) -> Project:
    return await ProjectStore(store).get_project(project_id)


@router.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(project_id: str, store: DocumentStore = Depends(get_store)) -> Response:
    if not await ProjectStore(store).delete_project(project_id):
        raise ProjectNotFoundError(project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/projects/{project_id}/phases/{phase}", response_model=Project)
async def update_phase(
    project_id: str,
    phase: str,
    data: dict[str, Any],
    store: DocumentStore = Depends(get_store),
) -> Project:
    return await ProjectStore(store).update_phase(project_id, phase, data)


@router.get("/projects/{project_id}/aggregate", response_model=ProjectAggregate)
async def aggregate_project(
    project_id: str, store: DocumentStore = Depends(get_store)
) -> ProjectAggregate:
    """Everything the appraisal, extraction and manuscript phases read."""
    return await ProjectStore(store).aggregate(project_id)


# ==================== Candidates ====================


@router.post("/projects/{project_id}/candidates/ingest", response_model=IngestionResult)
async def ingest_candidates(
    project_id: str, request: IngestRequest, store: DocumentStore = Depends(get_store)
) -> IngestionResult:
    return await IngestionPipeline(store).ingest(project_id, request.papers)


@router.get("/projects/{project_id}/candidates", response_model=list[Candidate])
async def list_candidates(
    project_id: str, pending_only: bool = False, store: DocumentStore = Depends(get_store)
) -> list[Candidate]:
    candidates = CandidateStore(store)
    if pending_only:
        return await candidates.list_pending(project_id)
    return await candidates.list(project_id)


@router.get("/projects/{project_id}/candidates/{candidate_id}", response_model=Candidate)
async def get_candidate(
    project_id: str, candidate_id: str, store: DocumentStore = Depends(get_store)
) -> Candidate:
    return await CandidateStore(store).get(project_id, candidate_id)


@router.patch("/projects/{project_id}/candidates/{candidate_id}", response_model=Candidate)
async def update_candidate(
    project_id: str,
    candidate_id: str,
    updates: dict[str, Any],
    store: DocumentStore = Depends(get_store),
) -> Candidate:
    return await CandidateStore(store).update(project_id, candidate_id, updates)


@router.post(
    "/projects/{project_id}/candidates/{candidate_id}/automated-decision",
    response_model=Candidate,
)
async def record_automated_decision(
    project_id: str,
    candidate_id: str,
    request: AutomatedDecisionRequest,
    store: DocumentStore = Depends(get_store),
) -> Candidate:
    return await DecisionStateMachine(store).record_automated_decision(
        project_id,
        candidate_id,
        request.decision,
        request.justification,
        subtopic=request.subtopic,
        confidence=request.confidence,
    )


@router.post("/projects/{project_id}/candidates/{candidate_id}/confirm", response_model=Candidate)
async def confirm_decision(
    project_id: str,
    candidate_id: str,
    request: ConfirmDecisionRequest,
    store: DocumentStore = Depends(get_store),
) -> Candidate:
    return await DecisionStateMachine(store).confirm_decision(
        project_id, candidate_id, request.decision, updates=request.updates
    )


# ==================== Screening ====================


@router.post(
    "/projects/{project_id}/screening/classifications", response_model=ScreeningSummary
)
async def apply_classifications(
    project_id: str,
    request: ClassificationBatchRequest,
    store: DocumentStore = Depends(get_store),
) -> ScreeningSummary:
    return await ScreeningService(store).apply_classifications(project_id, request.results)


@router.get("/projects/{project_id}/screening/checklist", response_model=ScreeningChecklist)
async def screening_checklist(
    project_id: str, store: DocumentStore = Depends(get_store)
) -> ScreeningChecklist:
    await ProjectStore(store).get_project(project_id)
    return await ScreeningService(store).checklist(project_id)


# ==================== Included Studies & Quality ====================


@router.get("/projects/{project_id}/included", response_model=list[IncludedStudy])
async def list_included(
    project_id: str, store: DocumentStore = Depends(get_store)
) -> list[IncludedStudy]:
    return await CandidateStore(store).list_included(project_id)


@router.post(
    "/projects/{project_id}/quality-assessments",
    status_code=status.HTTP_201_CREATED,
    response_model=QualityAssessment,
)
async def save_quality_assessment(
    project_id: str, assessment: QualityAssessment, store: DocumentStore = Depends(get_store)
) -> QualityAssessment:
    await CandidateStore(store).save_quality_assessment(project_id, assessment)
    return assessment


# ==================== PRISMA ====================


@router.get("/projects/{project_id}/prisma", response_model=PrismaCounters)
async def get_prisma(project_id: str, store: DocumentStore = Depends(get_store)) -> PrismaCounters:
    return await PrismaLedger(store).get_counters(project_id)


@router.put("/projects/{project_id}/prisma", response_model=PrismaCounters)
async def set_prisma(
    project_id: str, counters: PrismaCounters, store: DocumentStore = Depends(get_store)
) -> PrismaCounters:
    await ProjectStore(store).get_project(project_id)
    ledger = PrismaLedger(store)
    await ledger.set_counters(project_id, counters)
    return await ledger.get_counters(project_id)


# =============================================================================
# APPLICATION
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the configured store unless one was injected."""
    global _store
    settings = get_settings()
    configure_logging(settings.logging)
    owned = _store is None
    if owned:
        settings.ensure_directories()
        _store = create_store(settings)
    logger.info("prismaflow API %s started", __version__)
    try:
        yield
    finally:
        if owned and _store is not None:
            await _store.close()
            _store = None


def create_app() -> FastAPI:
    """Create FastAPI application.

    Returns:
        Configured FastAPI app
    """
    from fastapi.middleware.cors import CORSMiddleware

    app = FastAPI(
        title="prismaflow API",
        description="PRISMA screening workflow: ingestion, dedup, decisions and flow counts",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(PrismaFlowError, handle_prismaflow_error)  # type: ignore[arg-type]
    app.include_router(router)
    return app
