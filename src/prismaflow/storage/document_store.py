"""
Document Store

Asynchronous document-store abstraction the workflow core persists through.
Documents are JSON objects addressed by slash-separated paths; a collection is
the path prefix before the final segment.

Besides plain get/set/delete, stores provide two atomic primitives:
- ``increment``: server-side read-modify-write of numeric fields
- ``commit``: a batch of writes applied all-or-nothing, optionally guarded by
  preconditions on current document contents
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Sequence, Union

from prismaflow.core.exceptions import ConcurrentModificationError, DocumentNotFoundError
from prismaflow.storage.paths import encode_id

# =============================================================================
# WRITE OPERATIONS
# =============================================================================


@dataclass(frozen=True)
class SetDocument:
    """Create or overwrite a document; with merge=True, shallow-merge fields."""

    path: str
    data: dict[str, Any]
    merge: bool = False


@dataclass(frozen=True)
class DeleteDocument:
    """Delete a document (no-op if absent)."""

    path: str


@dataclass(frozen=True)
class IncrementFields:
    """Add signed deltas to numeric fields, creating the document if absent.

    Missing fields count as 0. With ``floor`` set, results are clamped to it.
    """

    path: str
    deltas: dict[str, int]
    floor: int | None = 0


@dataclass(frozen=True)
class Precondition:
    """Abort the batch unless the document's fields currently equal ``expected``.

    A missing document matches only when ``must_exist`` is False and every
    expected value is None / False.
    """

    path: str
    expected: dict[str, Any] = field(default_factory=dict)
    must_exist: bool = True


WriteOp = Union[SetDocument, DeleteDocument, IncrementFields, Precondition]


# =============================================================================
# SHARED SEMANTICS
# =============================================================================


def check_precondition(current: dict[str, Any] | None, op: Precondition) -> None:
    """Raise when ``op`` does not hold for ``current``."""
    if current is None:
        if op.must_exist:
            raise DocumentNotFoundError(op.path)
        if any(value not in (None, False) for value in op.expected.values()):
            raise ConcurrentModificationError(op.path, op.expected, None)
        return
    actual = {key: current.get(key) for key in op.expected}
    if actual != op.expected:
        raise ConcurrentModificationError(op.path, op.expected, actual)


def apply_write(current: dict[str, Any] | None, op: WriteOp) -> dict[str, Any] | None:
    """Resulting document after applying ``op`` to ``current`` (None = absent)."""
    if isinstance(op, Precondition):
        check_precondition(current, op)
        return current
    if isinstance(op, DeleteDocument):
        return None
    if isinstance(op, SetDocument):
        if op.merge and current is not None:
            merged = dict(current)
            merged.update(copy.deepcopy(op.data))
            return merged
        return copy.deepcopy(op.data)
    if isinstance(op, IncrementFields):
        updated = dict(current or {})
        for name, delta in op.deltas.items():
            value = int(updated.get(name) or 0) + delta
            if op.floor is not None:
                value = max(value, op.floor)
            updated[name] = value
        return updated
    raise TypeError(f"Unsupported write operation: {op!r}")


def plan_batch(
    ops: Sequence[WriteOp], current: dict[str, dict[str, Any] | None]
) -> dict[str, dict[str, Any] | None]:
    """
    Fold a batch of writes over the current documents.

    Args:
        ops: Writes in application order.
        current: Current contents of every path touched by ``ops``.

    Returns:
        Final contents per touched path (None means delete).

    Raises:
        ConcurrentModificationError: A precondition did not hold.
    """
    state = {path: copy.deepcopy(doc) for path, doc in current.items()}
    for op in ops:
        state[op.path] = apply_write(state.get(op.path), op)
    return state


# =============================================================================
# STORE INTERFACE
# =============================================================================


class DocumentStore(ABC):
    """Asynchronous document store.

    Every method is a coroutine; callers must await a write before relying on
    it in a subsequent read. Backend failures surface as StorageError.
    """

    @abstractmethod
    async def get(self, path: str) -> dict[str, Any] | None:
        """Get a document, or None if absent."""

    @abstractmethod
    async def list_collection(self, collection: str) -> list[tuple[str, dict[str, Any]]]:
        """List ``(doc_id, data)`` for every document directly in ``collection``."""

    @abstractmethod
    async def commit(self, ops: Sequence[WriteOp]) -> None:
        """Apply a batch of writes atomically."""

    async def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        await self.commit([SetDocument(path, data, merge=merge)])

    async def update(self, path: str, data: dict[str, Any]) -> None:
        """Merge fields into an existing document.

        Raises:
            DocumentNotFoundError: The document does not exist.
        """
        await self.commit([Precondition(path), SetDocument(path, data, merge=True)])

    async def delete(self, path: str) -> None:
        await self.commit([DeleteDocument(path)])

    async def increment(
        self, path: str, deltas: dict[str, int], floor: int | None = 0
    ) -> None:
        """Atomically add ``deltas`` to numeric fields of ``path``."""
        await self.commit([IncrementFields(path, deltas, floor=floor)])

    async def delete_collection(self, collection: str) -> int:
        """Delete every document directly in ``collection``; return the count."""
        docs = await self.list_collection(collection)
        if docs:
            await self.commit(
                [DeleteDocument(f"{collection}/{encode_id(doc_id)}") for doc_id, _ in docs]
            )
        return len(docs)

    async def close(self) -> None:
        """Release backend resources."""
        return None
