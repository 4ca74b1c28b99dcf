"""
In-memory document store.

Process-local store used for tests and for running the API without a
database. Batches run under one lock without yielding to the event loop, so
``commit`` and ``increment`` are atomic with respect to other coroutines and
threads.
"""

from __future__ import annotations

import copy
import threading
from typing import Any, Sequence

from prismaflow.storage.document_store import DocumentStore, WriteOp, plan_batch
from prismaflow.storage.paths import collection_of, doc_id_of


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed DocumentStore."""

    def __init__(self) -> None:
        self._documents: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    async def get(self, path: str) -> dict[str, Any] | None:
        with self._lock:
            doc = self._documents.get(path)
            return copy.deepcopy(doc) if doc is not None else None

    async def list_collection(self, collection: str) -> list[tuple[str, dict[str, Any]]]:
        with self._lock:
            return [
                (doc_id_of(path), copy.deepcopy(doc))
                for path, doc in self._documents.items()
                if collection_of(path) == collection
            ]

    async def commit(self, ops: Sequence[WriteOp]) -> None:
        if not ops:
            return
        with self._lock:
            current = {op.path: self._documents.get(op.path) for op in ops}
            final = plan_batch(ops, current)
            for path, doc in final.items():
                if doc is None:
                    self._documents.pop(path, None)
                else:
                    self._documents[path] = doc

    def __len__(self) -> int:
        return len(self._documents)
