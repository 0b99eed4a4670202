"""Registry of resource descriptors.

Built once at process start, then frozen. Associations registered without a
foreign key are completed from the storage schema through a
``SchemaInspector``; when no default can be found registration fails instead
of guessing.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sidepost.domain.errors import (
    RegistryError,
    RegistryFrozenError,
    UnknownAssociationError,
    UnknownResourceError,
    UnresolvableForeignKeyError,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from sidepost.domain.model import AssociationDescriptor, ResourceDescriptor
    from sidepost.domain.ports import SchemaInspector

log = logging.getLogger(__name__)


class ResourceRegistry:
    def __init__(
        self,
        resources: Iterable[ResourceDescriptor] = (),
        *,
        inspector: SchemaInspector | None = None,
    ) -> None:
        self._resources: dict[str, ResourceDescriptor] = {}
        self._inspector = inspector
        self._frozen = False
        for resource in resources:
            self.register(resource)

    def __contains__(self, resource_type: object) -> bool:
        return resource_type in self._resources

    def __iter__(self) -> Iterator[ResourceDescriptor]:
        return iter(self._resources.values())

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(
        self, resource: ResourceDescriptor, *, replace: bool = False
    ) -> ResourceDescriptor:
        """Complete and store ``resource``; returns the stored descriptor."""

        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register '{resource.type}': the resource registry is frozen"
            )
        if resource.type in self._resources and not replace:
            raise RegistryError(f"Resource '{resource.type}' is already registered")

        completed = resource.with_associations(
            self._complete(resource, association) for association in resource.associations.values()
        )
        self._resources[resource.type] = completed
        log.debug(
            "Registered resource %s with associations: %s",
            resource.type,
            ", ".join(completed.associations) or "-",
        )
        return completed

    def freeze(self) -> ResourceRegistry:
        """Check cross-references and make the registry read-only."""

        for resource in self._resources.values():
            for association in resource.associations.values():
                targets = (
                    (association.target,)
                    if isinstance(association.target, str)
                    else tuple(association.target.values())
                )
                for target in targets:
                    if target not in self._resources:
                        raise UnknownResourceError(target)
        self._frozen = True
        log.info("Resource registry frozen with %d resources", len(self._resources))
        return self

    def resource(self, resource_type: str) -> ResourceDescriptor:
        try:
            return self._resources[resource_type]
        except KeyError:
            raise UnknownResourceError(resource_type) from None

    def describe(self, resource_type: str, association_name: str) -> AssociationDescriptor:
        association = self.resource(resource_type).association(association_name)
        if association is None:
            raise UnknownAssociationError(resource_type, association_name)
        return association

    def target(
        self, association: AssociationDescriptor, discriminator: str | None = None
    ) -> ResourceDescriptor:
        """Return the descriptor to recurse into for ``association``."""

        return self.resource(association.target_type(discriminator))

    def _complete(
        self, resource: ResourceDescriptor, association: AssociationDescriptor
    ) -> AssociationDescriptor:
        if association.foreign_key is not None or not association.needs_foreign_key:
            return association
        inferred = (
            self._inspector.default_foreign_key(resource, association)
            if self._inspector is not None
            else None
        )
        if inferred is None:
            raise UnresolvableForeignKeyError(association.name, resource.type)
        log.debug(
            "Inferred foreign key %s for %s.%s", inferred, resource.type, association.name
        )
        return association.with_foreign_key(inferred)
