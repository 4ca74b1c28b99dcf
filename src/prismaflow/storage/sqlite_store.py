"""
SQLite Document Store

SQLite-based persistence for project documents. Each batch runs in one
``BEGIN IMMEDIATE`` transaction, so counter increments and multi-document
batches are atomic across connections and processes.

Blocking sqlite3 calls run in a worker thread so callers can await them from
the event loop.
"""

import asyncio
import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator, Sequence

from prismaflow.config import get_settings
from prismaflow.core.exceptions import StorageError
from prismaflow.storage.document_store import DocumentStore, WriteOp, plan_batch
from prismaflow.storage.paths import collection_of, doc_id_of


class SQLiteDocumentStore(DocumentStore):
    """
    SQLite-backed DocumentStore.

    Tables:
        - documents: one row per document path with its JSON body
    """

    def __init__(self, db_path: Path | None = None) -> None:
        """
        Initialize document store.

        Args:
            db_path: Path to SQLite database. Defaults to config.
        """
        self._db_path = db_path or get_settings().storage.db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @property
    def db_path(self) -> Path:
        """Get database path."""
        return self._db_path

    @contextmanager
    def _transaction(self, write: bool = True) -> Generator[sqlite3.Connection, None, None]:
        """Open a connection and hold a transaction for its lifetime.

        Write transactions take the database lock up front (BEGIN IMMEDIATE) so
        the reads they perform cannot go stale before the writes land.
        """
        try:
            conn = sqlite3.connect(self._db_path, timeout=30.0, isolation_level=None)
        except sqlite3.Error as e:
            raise StorageError(f"Database error: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA busy_timeout = 30000")  # 30s wait on lock
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            raise StorageError(f"Database error: {e}") from e
        finally:
            conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    path TEXT PRIMARY KEY,
                    collection TEXT NOT NULL,
                    data_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection)"
            )

    # ==================== Sync Operations ====================

    def _get_sync(self, path: str) -> dict[str, Any] | None:
        with self._transaction(write=False) as conn:
            row = conn.execute(
                "SELECT data_json FROM documents WHERE path = ?", (path,)
            ).fetchone()
            return json.loads(row["data_json"]) if row else None

    def _list_sync(self, collection: str) -> list[tuple[str, dict[str, Any]]]:
        with self._transaction(write=False) as conn:
            rows = conn.execute(
                "SELECT path, data_json FROM documents WHERE collection = ? ORDER BY path",
                (collection,),
            ).fetchall()
            return [(doc_id_of(row["path"]), json.loads(row["data_json"])) for row in rows]

    def _commit_sync(self, ops: Sequence[WriteOp]) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._transaction() as conn:
            current: dict[str, dict[str, Any] | None] = {}
            for op in ops:
                if op.path not in current:
                    row = conn.execute(
                        "SELECT data_json FROM documents WHERE path = ?", (op.path,)
                    ).fetchone()
                    current[op.path] = json.loads(row["data_json"]) if row else None

            final = plan_batch(ops, current)

            for path, doc in final.items():
                if doc is None:
                    conn.execute("DELETE FROM documents WHERE path = ?", (path,))
                else:
                    conn.execute(
                        """
                        INSERT OR REPLACE INTO documents (path, collection, data_json, updated_at)
                        VALUES (?, ?, ?, ?)
                        """,
                        (path, collection_of(path), json.dumps(doc, default=str), now),
                    )

    # ==================== DocumentStore ====================

    async def get(self, path: str) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._get_sync, path)

    async def list_collection(self, collection: str) -> list[tuple[str, dict[str, Any]]]:
        return await asyncio.to_thread(self._list_sync, collection)

    async def commit(self, ops: Sequence[WriteOp]) -> None:
        if not ops:
            return
        await asyncio.to_thread(self._commit_sync, list(ops))

    def count_documents(self, collection: str | None = None) -> int:
        """Count stored documents, optionally within one collection."""
        with self._transaction(write=False) as conn:
            if collection is None:
                row = conn.execute("SELECT COUNT(*) as count FROM documents").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) as count FROM documents WHERE collection = ?",
                    (collection,),
                ).fetchone()
            return row["count"] if row else 0
