"""In-process document store used for local development and tests."""

from __future__ import annotations

import copy
from collections import defaultdict
from threading import Lock
from typing import Any, DefaultDict, Iterable, Mapping, Sequence

from .contracts import (
    AbsentGuard,
    BatchWrite,
    Document,
    DocumentNotFoundError,
    GuardViolationError,
    validate_writes,
)


def _matches(data: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    return all(key in data and data[key] == value for key, value in filters.items())


class InMemoryDocumentStore:
    """Thread-safe dictionary-backed implementation of ``DocumentStore``."""

    def __init__(self) -> None:
        self._collections: DefaultDict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self._lock = Lock()

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        with self._lock:
            data = self._collections[collection].get(doc_id)
            return copy.deepcopy(data) if data is not None else None

    def query(self, collection: str, filters: Mapping[str, Any] | None = None) -> list[Document]:
        filters = filters or {}
        with self._lock:
            return [
                Document(doc_id=doc_id, data=copy.deepcopy(data))
                for doc_id, data in self._collections[collection].items()
                if _matches(data, filters)
            ]

    def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        self.atomic_batch([BatchWrite.set(collection, doc_id, data)])

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> None:
        self.atomic_batch([BatchWrite.update(collection, doc_id, changes)])

    def delete(self, collection: str, doc_id: str) -> None:
        self.atomic_batch([BatchWrite.delete(collection, doc_id)])

    def atomic_batch(
        self, writes: Sequence[BatchWrite], guards: Iterable[AbsentGuard] = ()
    ) -> None:
        """Check every guard then apply every write while holding the store lock.

        Writes are staged against a copy of the touched collections and only
        swapped in once the whole batch succeeded.
        """
        validate_writes(writes)
        with self._lock:
            for guard in guards:
                self._check_guard(guard)

            staged: dict[str, dict[str, dict[str, Any]]] = {}
            for write in writes:
                if write.collection not in staged:
                    staged[write.collection] = dict(self._collections[write.collection])
                documents = staged[write.collection]
                if write.op == "set":
                    documents[write.doc_id] = copy.deepcopy(write.data)
                elif write.op == "update":
                    current = documents.get(write.doc_id)
                    if current is None:
                        raise DocumentNotFoundError(write.collection, write.doc_id)
                    merged = dict(current)
                    merged.update(copy.deepcopy(write.data))
                    documents[write.doc_id] = merged
                else:
                    documents.pop(write.doc_id, None)

            self._collections.update(staged)

    def _check_guard(self, guard: AbsentGuard) -> None:
        for doc_id, data in self._collections[guard.collection].items():
            if doc_id == guard.exclude_id:
                continue
            if _matches(data, guard.filters):
                raise GuardViolationError(guard)
