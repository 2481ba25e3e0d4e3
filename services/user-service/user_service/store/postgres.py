"""Postgres-backed document store built on a single JSONB table."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Mapping, Sequence

import psycopg
from psycopg.rows import tuple_row
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from .contracts import (
    AbsentGuard,
    BatchWrite,
    Document,
    DocumentNotFoundError,
    GuardViolationError,
    StoreError,
    validate_writes,
)

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    doc_id TEXT NOT NULL,
    body JSONB NOT NULL,
    PRIMARY KEY (collection, doc_id)
);
CREATE INDEX IF NOT EXISTS documents_body_gin ON documents USING GIN (body jsonb_path_ops);
"""


class PostgresDocumentStore:
    """``DocumentStore`` implementation storing every collection in one table."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def ensure_schema(self) -> None:
        """Create the documents table and its containment index if missing."""
        with self._errors("ensure_schema"):
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(SCHEMA_SQL)
                conn.commit()

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        with self._errors("get"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        "SELECT body FROM documents WHERE collection = %s AND doc_id = %s",
                        (collection, doc_id),
                    )
                    row = cur.fetchone()
        return row[0] if row else None

    def query(self, collection: str, filters: Mapping[str, Any] | None = None) -> list[Document]:
        """Return documents whose body contains every ``filters`` key/value pair."""
        with self._errors("query"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        SELECT doc_id, body
                        FROM documents
                        WHERE collection = %s AND body @> %s
                        """,
                        (collection, Jsonb(dict(filters or {}))),
                    )
                    rows = cur.fetchall()
        return [Document(doc_id=row[0], data=row[1]) for row in rows]

    def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        self.atomic_batch([BatchWrite.set(collection, doc_id, data)])

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> None:
        self.atomic_batch([BatchWrite.update(collection, doc_id, changes)])

    def delete(self, collection: str, doc_id: str) -> None:
        self.atomic_batch([BatchWrite.delete(collection, doc_id)])

    def atomic_batch(
        self, writes: Sequence[BatchWrite], guards: Iterable[AbsentGuard] = ()
    ) -> None:
        """Apply ``writes`` in one transaction after checking every guard.

        Each guard takes a transaction-scoped advisory lock on its key before
        the existence check, so concurrent batches guarding the same value run
        one after the other and the second one sees the first one's commit.
        """
        validate_writes(writes)
        ordered_guards = sorted(guards, key=lambda guard: guard.lock_key())
        with self._errors("atomic_batch"):
            with self._pool.connection() as conn:
                with conn.transaction():
                    with conn.cursor(row_factory=tuple_row) as cur:
                        for guard in ordered_guards:
                            self._check_guard(cur, guard)
                        for write in writes:
                            self._apply(cur, write)

    def _check_guard(self, cur: psycopg.Cursor, guard: AbsentGuard) -> None:
        cur.execute("SELECT pg_advisory_xact_lock(hashtextextended(%s, 0))", (guard.lock_key(),))
        cur.execute(
            """
            SELECT doc_id
            FROM documents
            WHERE collection = %s
              AND body @> %s
              AND (%s::text IS NULL OR doc_id <> %s)
            LIMIT 1
            """,
            (guard.collection, Jsonb(guard.filters), guard.exclude_id, guard.exclude_id),
        )
        if cur.fetchone():
            raise GuardViolationError(guard)

    def _apply(self, cur: psycopg.Cursor, write: BatchWrite) -> None:
        if write.op == "set":
            cur.execute(
                """
                INSERT INTO documents (collection, doc_id, body)
                VALUES (%s, %s, %s)
                ON CONFLICT (collection, doc_id) DO UPDATE SET body = EXCLUDED.body
                """,
                (write.collection, write.doc_id, Jsonb(write.data)),
            )
        elif write.op == "update":
            cur.execute(
                """
                UPDATE documents
                SET body = body || %s
                WHERE collection = %s AND doc_id = %s
                """,
                (Jsonb(write.data), write.collection, write.doc_id),
            )
            if cur.rowcount == 0:
                raise DocumentNotFoundError(write.collection, write.doc_id)
        else:
            cur.execute(
                "DELETE FROM documents WHERE collection = %s AND doc_id = %s",
                (write.collection, write.doc_id),
            )

    @contextmanager
    def _errors(self, operation: str) -> Iterator[None]:
        """Translate driver errors into ``StoreError`` keeping the original as cause."""
        try:
            yield
        except psycopg.Error as exc:
            logger.error("document store %s failed: %s", operation, exc)
            raise StoreError(f"document store {operation} failed") from exc
