"""Error taxonomy for nested persistence.

- configuration errors surface wiring bugs in resource registration
- malformed-input errors reject a request before anything is written
- identity errors reject a request whose payload references objects that
  were not resolved for their parent
- field-level validation failures never raise on their own; they only flip
  the verdict (see ``ValidationVerdict.raise_if_invalid``)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sidepost.config.errors import ConfigurationError

if TYPE_CHECKING:
    from sidepost.domain.model.results import ValidationVerdict


class SidepostError(Exception):
    """Base class for every error raised by the engine."""


# Configuration -----------------------------------------------------------------


class RegistryError(SidepostError, ConfigurationError):
    """Resource configuration is inconsistent."""


class UnknownResourceError(RegistryError):
    def __init__(self, resource_type: str) -> None:
        super().__init__(f"No resource registered for type '{resource_type}'")
        self.resource_type = resource_type


class UnknownAssociationError(RegistryError):
    def __init__(self, resource_type: str, association_name: str) -> None:
        super().__init__(
            f"Resource '{resource_type}' has no association named '{association_name}'"
        )
        self.resource_type = resource_type
        self.association_name = association_name


class UnresolvableForeignKeyError(RegistryError):
    def __init__(self, association_name: str, resource_type: str) -> None:
        super().__init__(
            "Could not infer a default foreign key for the association "
            f"'{association_name}' on the resource '{resource_type}'. "
            "Set foreign_key explicitly in the association definition."
        )
        self.association_name = association_name
        self.resource_type = resource_type


class RegistryFrozenError(RegistryError):
    """Raised when a frozen registry is asked to register more resources."""


# Input -------------------------------------------------------------------------


class MalformedInputError(SidepostError):
    """The request payload cannot be processed; nothing has been written."""


class MalformedRelationshipError(MalformedInputError):
    def __init__(self, message: str, *, path: tuple[str | int, ...] = ()) -> None:
        location = ".".join(str(part) for part in path) if path else "<root>"
        super().__init__(f"{message} (at {location})")
        self.path = path


class UnidentifiedRelationshipItemError(MalformedInputError):
    def __init__(self, association_name: str) -> None:
        super().__init__(
            f"Resources in relationship '{association_name}' not identified by id or temp_id"
        )
        self.association_name = association_name


class UnmatchedIdentityError(SidepostError):
    """A payload entry could not be matched to its persisted related object."""

    def __init__(
        self,
        association_name: str,
        *,
        durable_id: str | None = None,
        temp_id: str | None = None,
    ) -> None:
        if temp_id is not None:
            detail = f"temp-id '{temp_id}'"
        else:
            detail = f"id '{durable_id}'"
        super().__init__(
            f"Could not match incoming item with {detail} in '{association_name}' "
            "to its related object"
        )
        self.association_name = association_name
        self.durable_id = durable_id
        self.temp_id = temp_id


class ValidationFailedError(SidepostError):
    """Raised on demand when a verdict reports field-level errors."""

    def __init__(self, verdict: ValidationVerdict) -> None:
        failing = ", ".join(verdict.format_path(path) for path in verdict.errors) or "<none>"
        super().__init__(f"Validation failed for: {failing}")
        self.verdict = verdict


# Storage -----------------------------------------------------------------------


class StorageError(SidepostError):
    """Wraps failures of the underlying storage engine."""


class NotFoundError(StorageError):
    def __init__(self, resource_type: str, key: object) -> None:
        super().__init__(f"No '{resource_type}' found with id {key!r}")
        self.resource_type = resource_type
        self.key = key
