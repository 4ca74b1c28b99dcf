"""
prismaflow Storage Layer

Document store abstraction, backends and the per-project path layout.
"""

from prismaflow.storage.document_store import (
    DeleteDocument,
    DocumentStore,
    IncrementFields,
    Precondition,
    SetDocument,
    WriteOp,
)
from prismaflow.storage.factory import create_store
from prismaflow.storage.memory_store import InMemoryDocumentStore
from prismaflow.storage.sqlite_store import SQLiteDocumentStore

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "SQLiteDocumentStore",
    "SetDocument",
    "DeleteDocument",
    "IncrementFields",
    "Precondition",
    "WriteOp",
    "create_store",
]
