"""Document store adapters."""

from .contracts import (
    AbsentGuard,
    BatchWrite,
    Document,
    DocumentNotFoundError,
    DocumentStore,
    GuardViolationError,
    StoreError,
)
from .memory import InMemoryDocumentStore

__all__ = [
    "AbsentGuard",
    "BatchWrite",
    "Document",
    "DocumentNotFoundError",
    "DocumentStore",
    "GuardViolationError",
    "InMemoryDocumentStore",
    "StoreError",
]
