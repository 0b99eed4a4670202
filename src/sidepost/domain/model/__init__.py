"""Public domain model surface."""

from __future__ import annotations

from sidepost.domain.model.descriptors import (
    AssociationDescriptor,
    ResourceDescriptor,
    Validator,
    belongs_to,
    embeds_many,
    embeds_one,
    has_many,
    has_one,
    many_to_many,
    polymorphic_belongs_to,
)
from sidepost.domain.model.enums import AssociationKind, Operation
from sidepost.domain.model.payload import Identity, PayloadNode, PayloadPath, infer_operation
from sidepost.domain.model.results import (
    NO_ERRORS,
    ErrorPath,
    FieldErrors,
    PersistResult,
    SaveResult,
    ValidationVerdict,
)

__all__ = [  # noqa: RUF022
    # enums
    "AssociationKind",
    "Operation",
    # descriptors
    "AssociationDescriptor",
    "ResourceDescriptor",
    "Validator",
    "belongs_to",
    "embeds_many",
    "embeds_one",
    "has_many",
    "has_one",
    "many_to_many",
    "polymorphic_belongs_to",
    # payload
    "Identity",
    "PayloadNode",
    "PayloadPath",
    "infer_operation",
    # results
    "NO_ERRORS",
    "ErrorPath",
    "FieldErrors",
    "PersistResult",
    "SaveResult",
    "ValidationVerdict",
]
