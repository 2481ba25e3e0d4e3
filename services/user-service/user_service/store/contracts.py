"""Document store contract shared by every storage backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Protocol, Sequence


class StoreError(RuntimeError):
    """Raised when the underlying document store fails an operation."""


class DocumentNotFoundError(StoreError):
    """Raised when an update targets a document that does not exist."""

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"document {collection}/{doc_id} not found")
        self.collection = collection
        self.doc_id = doc_id


class GuardViolationError(StoreError):
    """Raised when an atomic batch guard matches an existing document."""

    def __init__(self, guard: "AbsentGuard") -> None:
        super().__init__(f"guard violated on {guard.collection}")
        self.guard = guard


@dataclass(slots=True)
class Document:
    """A stored document together with its identifier."""

    doc_id: str
    data: dict[str, Any]


@dataclass(slots=True)
class BatchWrite:
    """One write inside an atomic batch."""

    op: str
    collection: str
    doc_id: str
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def set(cls, collection: str, doc_id: str, data: Mapping[str, Any]) -> "BatchWrite":
        return cls("set", collection, doc_id, dict(data))

    @classmethod
    def update(cls, collection: str, doc_id: str, changes: Mapping[str, Any]) -> "BatchWrite":
        return cls("update", collection, doc_id, dict(changes))

    @classmethod
    def delete(cls, collection: str, doc_id: str) -> "BatchWrite":
        return cls("delete", collection, doc_id)


@dataclass(slots=True)
class AbsentGuard:
    """Precondition asserting that no document in ``collection`` matches ``filters``.

    ``exclude_id`` lets a batch ignore the document it is about to modify.
    """

    collection: str
    filters: dict[str, Any]
    exclude_id: str | None = None

    def lock_key(self) -> str:
        """Return a stable key identifying the guarded value set."""
        parts = ",".join(f"{key}={self.filters[key]!r}" for key in sorted(self.filters))
        return f"{self.collection}:{parts}"


WRITE_OPS = frozenset({"set", "update", "delete"})


class DocumentStore(Protocol):
    """Schemaless per-collection storage with an atomic multi-document write."""

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        ...

    def query(self, collection: str, filters: Mapping[str, Any] | None = None) -> list[Document]:
        ...

    def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        ...

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> None:
        ...

    def delete(self, collection: str, doc_id: str) -> None:
        ...

    def atomic_batch(
        self, writes: Sequence[BatchWrite], guards: Iterable[AbsentGuard] = ()
    ) -> None:
        ...


def validate_writes(writes: Sequence[BatchWrite]) -> None:
    """Reject unknown operations before any backend starts applying a batch."""
    for write in writes:
        if write.op not in WRITE_OPS:
            raise ValueError(f"unsupported batch operation: {write.op}")
