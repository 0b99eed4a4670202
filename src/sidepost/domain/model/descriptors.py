"""Static resource and association metadata.

Descriptors are immutable once built. A ``ResourceDescriptor`` names the
domain class an adapter instantiates, its primary key, and its associations.
The module-level helpers (``has_many``, ``belongs_to`` ...) are the usual way
to declare associations.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, TypeAlias

from sidepost.domain.model.enums import AssociationKind

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sidepost.domain.model.results import FieldErrors

Validator: TypeAlias = "Callable[[Mapping[str, object]], FieldErrors]"


def _singularize(name: str) -> str:
    if name.endswith("ies"):
        return f"{name[:-3]}y"
    if name.endswith("s"):
        return name[:-1]
    return name


@dataclass(frozen=True, slots=True, kw_only=True)
class AssociationDescriptor:
    """How one association is stored and wired.

    ``foreign_key`` lives on the node being persisted for ``belongs_to`` and
    polymorphic kinds, on the related node for ``has_many``/``has_one``, and
    is the optional inverse id array on the related node for
    ``many_to_many``. ``foreign_keys_attribute`` is the parent-side id array
    of a ``many_to_many`` association.
    """

    name: str
    kind: AssociationKind
    target: str | Mapping[str, str]
    foreign_key: str | None = None
    primary_key: str = "id"
    foreign_keys_attribute: str | None = None
    discriminator_attribute: str | None = None

    def __post_init__(self) -> None:
        if self.kind.is_polymorphic:
            if not isinstance(self.target, Mapping) or not self.target:
                raise ValueError(f"Polymorphic association '{self.name}' needs target groups")
            object.__setattr__(self, "target", MappingProxyType(dict(self.target)))
            if self.discriminator_attribute is None:
                object.__setattr__(self, "discriminator_attribute", f"{self.name}_type")
            if self.foreign_key is None:
                object.__setattr__(self, "foreign_key", f"{self.name}_id")
        elif not isinstance(self.target, str):
            raise ValueError(f"Association '{self.name}' must target a single resource type")

        if self.kind is AssociationKind.MANY_TO_MANY and self.foreign_keys_attribute is None:
            object.__setattr__(
                self, "foreign_keys_attribute", f"{_singularize(self.name)}_ids"
            )

    @property
    def needs_foreign_key(self) -> bool:
        return self.kind in (
            AssociationKind.BELONGS_TO,
            AssociationKind.HAS_MANY,
            AssociationKind.HAS_ONE,
        )

    def target_type(self, discriminator: str | None = None) -> str:
        """Return the related resource type, picking a group for polymorphic kinds."""

        if isinstance(self.target, str):
            return self.target
        if discriminator is None or discriminator not in self.target:
            raise KeyError(discriminator)
        return self.target[discriminator]

    def discriminator_for(self, resource_type: str) -> str:
        """Inverse of ``target_type`` for polymorphic associations."""

        if isinstance(self.target, str):
            return resource_type
        for discriminator, target in self.target.items():
            if target == resource_type:
                return discriminator
        raise KeyError(resource_type)

    def with_foreign_key(self, foreign_key: str) -> AssociationDescriptor:
        return replace(self, foreign_key=foreign_key)


@dataclass(frozen=True, slots=True, kw_only=True)
class ResourceDescriptor:
    """Static description of one resource type."""

    type: str
    model: type[object]
    primary_key: str = "id"
    associations: Mapping[str, AssociationDescriptor] = field(
        default_factory=dict["str", "AssociationDescriptor"]
    )
    validator: Validator | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "associations", MappingProxyType(dict(self.associations)))

    @classmethod
    def build(
        cls,
        type_: str,
        model: type[object],
        *associations: AssociationDescriptor,
        primary_key: str = "id",
        validator: Validator | None = None,
    ) -> ResourceDescriptor:
        return cls(
            type=type_,
            model=model,
            primary_key=primary_key,
            associations={association.name: association for association in associations},
            validator=validator,
        )

    def association(self, name: str) -> AssociationDescriptor | None:
        return self.associations.get(name)

    def with_associations(
        self, associations: Iterable[AssociationDescriptor]
    ) -> ResourceDescriptor:
        return replace(
            self, associations={association.name: association for association in associations}
        )

    def validate(self, values: Mapping[str, object]) -> FieldErrors:
        if self.validator is None:
            return MappingProxyType({})
        return self.validator(values)


# Declaration helpers -------------------------------------------------------------


def has_many(
    name: str, *, resource: str, foreign_key: str | None = None, primary_key: str = "id"
) -> AssociationDescriptor:
    return AssociationDescriptor(
        name=name,
        kind=AssociationKind.HAS_MANY,
        target=resource,
        foreign_key=foreign_key,
        primary_key=primary_key,
    )


def has_one(
    name: str, *, resource: str, foreign_key: str | None = None, primary_key: str = "id"
) -> AssociationDescriptor:
    return AssociationDescriptor(
        name=name,
        kind=AssociationKind.HAS_ONE,
        target=resource,
        foreign_key=foreign_key,
        primary_key=primary_key,
    )


def belongs_to(
    name: str, *, resource: str, foreign_key: str | None = None, primary_key: str = "id"
) -> AssociationDescriptor:
    return AssociationDescriptor(
        name=name,
        kind=AssociationKind.BELONGS_TO,
        target=resource,
        foreign_key=foreign_key,
        primary_key=primary_key,
    )


def many_to_many(
    name: str,
    *,
    resource: str,
    foreign_keys_attribute: str | None = None,
    inverse_foreign_keys: str | None = None,
    primary_key: str = "id",
) -> AssociationDescriptor:
    return AssociationDescriptor(
        name=name,
        kind=AssociationKind.MANY_TO_MANY,
        target=resource,
        foreign_key=inverse_foreign_keys,
        foreign_keys_attribute=foreign_keys_attribute,
        primary_key=primary_key,
    )


def embeds_many(name: str, *, resource: str, primary_key: str = "id") -> AssociationDescriptor:
    return AssociationDescriptor(
        name=name, kind=AssociationKind.EMBEDS_MANY, target=resource, primary_key=primary_key
    )


def embeds_one(name: str, *, resource: str, primary_key: str = "id") -> AssociationDescriptor:
    return AssociationDescriptor(
        name=name, kind=AssociationKind.EMBEDS_ONE, target=resource, primary_key=primary_key
    )


def polymorphic_belongs_to(
    name: str,
    *,
    groups: Mapping[str, str],
    group_by: str | None = None,
    foreign_key: str | None = None,
    primary_key: str = "id",
) -> AssociationDescriptor:
    return AssociationDescriptor(
        name=name,
        kind=AssociationKind.POLYMORPHIC_BELONGS_TO,
        target=groups,
        foreign_key=foreign_key,
        discriminator_attribute=group_by,
        primary_key=primary_key,
    )
