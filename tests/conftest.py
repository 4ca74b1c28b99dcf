"""
prismaflow Test Configuration

Shared fixtures and test utilities.
"""

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Generator

import pytest


# Set test environment before any imports
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("PRISMAFLOW_STORE_BACKEND", "memory")

# Use temp directories for storage during tests
_test_temp_dir = Path(tempfile.gettempdir()) / "prismaflow_test"
_test_temp_dir.mkdir(parents=True, exist_ok=True)
os.environ.setdefault("PRISMAFLOW_DB_PATH", str(_test_temp_dir / "prismaflow_test.db"))

from prismaflow.core.enums import RecordSource  # noqa: E402
from prismaflow.core.schemas import ExternalPaper  # noqa: E402
from prismaflow.storage import InMemoryDocumentStore, SQLiteDocumentStore  # noqa: E402
from prismaflow.workflow import ProjectStore  # noqa: E402

PROJECT_ID = "proj-1"


@pytest.fixture(autouse=True)
def reset_settings() -> Generator[None, None, None]:
    """Reset settings before each test."""
    from prismaflow.config import reset_settings

    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    """Empty in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def sqlite_store(tmp_path: Path) -> SQLiteDocumentStore:
    """SQLite document store on a temporary database."""
    return SQLiteDocumentStore(db_path=tmp_path / "documents.db")


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path: Path):
    """Each document store backend in turn."""
    if request.param == "memory":
        return InMemoryDocumentStore()
    return SQLiteDocumentStore(db_path=tmp_path / "documents.db")


@pytest.fixture
def project_id(memory_store: InMemoryDocumentStore) -> str:
    """Id of a project created in ``memory_store``."""
    asyncio.run(
        ProjectStore(memory_store).create_project(
            "user-1", "GLP-1 agonists in type 2 diabetes", project_id=PROJECT_ID
        )
    )
    return PROJECT_ID


@pytest.fixture
def make_paper() -> Callable[..., ExternalPaper]:
    """Factory for external papers with a usable abstract by default."""

    def _make(paper_id: str, **overrides: Any) -> ExternalPaper:
        data: dict[str, Any] = {
            "id": paper_id,
            "source": RecordSource.PUBMED,
            "title": f"Effect of GLP-1 agonists on HbA1c ({paper_id})",
            "authors": ["Smith J", "Doe A"],
            "year": 2023,
            "abstract": "Background: glycemic control. Results: HbA1c decreased by 1.2%.",
            "doi": None,
        }
        data.update(overrides)
        return ExternalPaper(**data)

    return _make
