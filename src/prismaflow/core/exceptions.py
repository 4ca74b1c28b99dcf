"""
prismaflow Custom Exceptions

This module defines all custom exceptions used throughout prismaflow.
Exceptions are organized by layer/responsibility.
"""

from typing import Any


class PrismaFlowError(Exception):
    """Base exception for all prismaflow errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigurationError(PrismaFlowError):
    """Error in system configuration."""

    pass


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(PrismaFlowError):
    """Error in data validation."""

    pass


class InvalidTransitionError(ValidationError):
    """Requested decision transition is not allowed from the current state."""

    def __init__(self, candidate_id: str, state: str, operation: str):
        super().__init__(
            f"Cannot {operation} candidate {candidate_id} in state '{state}'",
            {"candidate_id": candidate_id, "state": state, "operation": operation},
        )


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class StorageError(PrismaFlowError):
    """Base error for storage operations."""

    pass


class DocumentNotFoundError(StorageError):
    """Update targeted a document that does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Document not found: {path}", {"path": path})


class ProjectNotFoundError(StorageError):
    """Requested project not found."""

    def __init__(self, project_id: str):
        super().__init__(f"Project not found: {project_id}", {"project_id": project_id})


class CandidateNotFoundError(StorageError):
    """Requested candidate not found."""

    def __init__(self, project_id: str, candidate_id: str):
        super().__init__(
            f"Candidate '{candidate_id}' not found in project {project_id}",
            {"project_id": project_id, "candidate_id": candidate_id},
        )


class ConcurrentModificationError(StorageError):
    """A batch precondition failed because the document changed underneath it."""

    def __init__(self, path: str, expected: dict[str, Any], actual: dict[str, Any] | None):
        super().__init__(
            f"Document {path} was modified concurrently",
            {"path": path, "expected": expected, "actual": actual},
        )


# =============================================================================
# INGESTION ERRORS
# =============================================================================


class IngestionError(PrismaFlowError):
    """Base error for batch ingestion."""

    pass


class PartialIngestionError(IngestionError):
    """Some candidate writes of an ingestion batch failed.

    The ledger delta has already been applied; ``result`` reports what was
    actually persisted so the caller can retry ``result.failed_ids``.
    """

    def __init__(self, project_id: str, result: Any, errors: list[str]):
        super().__init__(
            f"{len(result.failed_ids)} candidate write(s) failed for project {project_id}",
            {"project_id": project_id, "failed_ids": list(result.failed_ids), "errors": errors},
        )
        self.result = result
