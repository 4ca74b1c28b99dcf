"""
Document store factory.

Selects the backend named by ``StorageSettings.backend``.
"""

import logging

from prismaflow.config import Settings, get_settings
from prismaflow.core.exceptions import ConfigurationError
from prismaflow.storage.document_store import DocumentStore
from prismaflow.storage.memory_store import InMemoryDocumentStore
from prismaflow.storage.sqlite_store import SQLiteDocumentStore

logger = logging.getLogger(__name__)


def create_store(settings: Settings | None = None) -> DocumentStore:
    """Create the configured document store."""
    settings = settings or get_settings()
    backend = settings.storage.backend

    if backend == "memory":
        logger.info("Using in-memory document store")
        return InMemoryDocumentStore()
    if backend == "sqlite":
        logger.info("Using SQLite document store at %s", settings.storage.db_path)
        return SQLiteDocumentStore(db_path=settings.storage.db_path)
    raise ConfigurationError(f"Unknown store backend: {backend}", {"backend": backend})
