"""
Document paths for the per-project layout.

    projects/{project_id}
    projects/{project_id}/candidates/{candidate_id}
    projects/{project_id}/included_studies/{candidate_id}
    projects/{project_id}/prisma/stats
    projects/{project_id}/quality_assessments/{assessment_id}

Candidate ids come from external sources (DOIs, URLs) and are URL-encoded so
they always form a single path segment.
"""

from urllib.parse import quote, unquote

PROJECTS = "projects"

CANDIDATES = "candidates"
INCLUDED_STUDIES = "included_studies"
PRISMA = "prisma"
QUALITY_ASSESSMENTS = "quality_assessments"

# Every sub-collection removed on project deletion
PROJECT_SUBCOLLECTIONS = (CANDIDATES, INCLUDED_STUDIES, QUALITY_ASSESSMENTS, PRISMA)


def encode_id(doc_id: str) -> str:
    return quote(doc_id, safe="")


def decode_id(segment: str) -> str:
    return unquote(segment)


def collection_of(path: str) -> str:
    """Collection path containing a document path."""
    return path.rsplit("/", 1)[0]


def doc_id_of(path: str) -> str:
    return decode_id(path.rsplit("/", 1)[1])


def project_path(project_id: str) -> str:
    return f"{PROJECTS}/{encode_id(project_id)}"


def subcollection(project_id: str, name: str) -> str:
    return f"{project_path(project_id)}/{name}"


def candidates_collection(project_id: str) -> str:
    return subcollection(project_id, CANDIDATES)


def candidate_path(project_id: str, candidate_id: str) -> str:
    return f"{candidates_collection(project_id)}/{encode_id(candidate_id)}"


def included_collection(project_id: str) -> str:
    return subcollection(project_id, INCLUDED_STUDIES)


def included_path(project_id: str, candidate_id: str) -> str:
    return f"{included_collection(project_id)}/{encode_id(candidate_id)}"


def prisma_stats_path(project_id: str) -> str:
    return f"{subcollection(project_id, PRISMA)}/stats"


def quality_collection(project_id: str) -> str:
    return subcollection(project_id, QUALITY_ASSESSMENTS)


def quality_path(project_id: str, assessment_id: str) -> str:
    return f"{quality_collection(project_id)}/{encode_id(assessment_id)}"
