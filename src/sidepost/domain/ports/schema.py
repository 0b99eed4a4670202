"""Port for inferring association defaults from the storage schema."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sidepost.domain.model import AssociationDescriptor, ResourceDescriptor


@runtime_checkable
class SchemaInspector(Protocol):
    def default_foreign_key(
        self, resource: ResourceDescriptor, association: AssociationDescriptor
    ) -> str | None:
        """Return the foreign key the schema implies, or ``None`` if it cannot tell."""
        ...
