"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Operation(StrEnum):
    """What a payload node asks the engine to do with its record."""

    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"
    DISASSOCIATE = "disassociate"

    @property
    def severs_link(self) -> bool:
        """Whether the node's link to its parent is cut by this operation."""
        return self in (Operation.DESTROY, Operation.DISASSOCIATE)


class AssociationKind(StrEnum):
    """Association kinds; the kind alone fixes where the foreign key lives."""

    HAS_MANY = "has_many"
    HAS_ONE = "has_one"
    BELONGS_TO = "belongs_to"
    MANY_TO_MANY = "many_to_many"
    EMBEDS_MANY = "embeds_many"
    EMBEDS_ONE = "embeds_one"
    POLYMORPHIC_BELONGS_TO = "polymorphic_belongs_to"

    @property
    def resolves_before_parent(self) -> bool:
        """Related node must be persisted before the node that references it."""
        return self in (AssociationKind.BELONGS_TO, AssociationKind.POLYMORPHIC_BELONGS_TO)

    @property
    def is_embedded(self) -> bool:
        return self in (AssociationKind.EMBEDS_MANY, AssociationKind.EMBEDS_ONE)

    @property
    def is_collection(self) -> bool:
        return self in (
            AssociationKind.HAS_MANY,
            AssociationKind.MANY_TO_MANY,
            AssociationKind.EMBEDS_MANY,
        )

    @property
    def is_polymorphic(self) -> bool:
        return self is AssociationKind.POLYMORPHIC_BELONGS_TO
