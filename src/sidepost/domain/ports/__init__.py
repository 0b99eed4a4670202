"""Domain port definitions for adapters."""

from __future__ import annotations

from .schema import SchemaInspector
from .storage import Embedding, StorageAdapter, TransactionScope
from .unit_of_work import UnitOfWork

__all__ = [
    "Embedding",
    "SchemaInspector",
    "StorageAdapter",
    "TransactionScope",
    "UnitOfWork",
]
