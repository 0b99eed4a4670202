"""Nested-relationship persistence ("sideposting") core.

Flow for one request:
1) walk the payload tree once to surface input and configuration errors
2) persist it depth-first through a storage adapter (orchestrator)
3) fold the per-node field errors into one verdict (validation)
"""

from __future__ import annotations

from .cache import RequestCache
from .foreign_keys import KeySetUpdate, resolve_attributes, rewrite_foreign_keys
from .orchestrator import PersistenceOrchestrator
from .validation import verify
from .walker import NormalizedRelationships, RelationshipEdge, check_tree, normalize

__all__ = [
    "KeySetUpdate",
    "NormalizedRelationships",
    "PersistenceOrchestrator",
    "RelationshipEdge",
    "RequestCache",
    "check_tree",
    "normalize",
    "resolve_attributes",
    "rewrite_foreign_keys",
    "verify",
]
