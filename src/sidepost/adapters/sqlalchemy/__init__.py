"""SQLAlchemy adapter package for sidepost."""

from __future__ import annotations

from .inspector import SqlAlchemySchemaInspector
from .storage import SqlAlchemyStorageAdapter
from .unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemySchemaInspector",
    "SqlAlchemyStorageAdapter",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "configured_engine",
    "is_started",
    "shutdown",
    "startup",
]
