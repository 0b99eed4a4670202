"""Transient payload tree handed to the persistence orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeAlias

from sidepost.domain.errors import MalformedRelationshipError
from sidepost.domain.model.enums import Operation

if TYPE_CHECKING:
    from collections.abc import Iterator

PayloadPath: TypeAlias = tuple[str | int, ...]


@dataclass(frozen=True, slots=True)
class Identity:
    """Either a durable primary key or a request-scoped temp-id, never both."""

    durable_id: str | None = None
    temp_id: str | None = None

    @property
    def is_identified(self) -> bool:
        return self.durable_id is not None or self.temp_id is not None

    @property
    def key(self) -> str | None:
        return self.durable_id if self.durable_id is not None else self.temp_id


@dataclass(slots=True)
class PayloadNode:
    """One resource in the request tree.

    ``attributes`` is mutated while foreign keys are wired, so every node
    owns its own dict.
    """

    operation: Operation | None = None
    identity: Identity = field(default_factory=Identity)
    attributes: dict[str, object] = field(default_factory=dict["str", "object"])
    relationships: dict[str, PayloadNode | tuple[PayloadNode, ...]] = field(
        default_factory=dict["str", "PayloadNode | tuple[PayloadNode, ...]"]
    )
    resource_type: str | None = None

    @property
    def durable_id(self) -> str | None:
        return self.identity.durable_id

    @property
    def temp_id(self) -> str | None:
        return self.identity.temp_id

    @property
    def effective_operation(self) -> Operation:
        """The explicit operation, else update for an id and create otherwise."""

        if self.operation is not None:
            return self.operation
        return Operation.UPDATE if self.durable_id is not None else Operation.CREATE

    @property
    def severs_link(self) -> bool:
        return self.operation is not None and self.operation.severs_link

    def related_nodes(self) -> Iterator[tuple[str, PayloadNode]]:
        for name, value in self.relationships.items():
            if isinstance(value, PayloadNode):
                yield name, value
            else:
                for node in value:
                    yield name, node


def infer_operation(
    identity: Identity,
    operation: Operation | None,
    *,
    path: PayloadPath,
    root: bool = False,
) -> Operation:
    """Apply the identity/operation defaults and reject inconsistent entries.

    Relationship entries must carry exactly one of durable id and temp-id;
    creates carry the temp-id. The root node may omit identity when creating.
    """

    if identity.durable_id is not None and identity.temp_id is not None:
        raise MalformedRelationshipError("Entry carries both id and temp_id", path=path)

    if not identity.is_identified:
        if root and operation in (None, Operation.CREATE):
            return Operation.CREATE
        raise MalformedRelationshipError("Entry has neither id nor temp_id", path=path)

    if operation is None:
        return Operation.UPDATE if identity.durable_id is not None else Operation.CREATE

    if operation is Operation.CREATE and identity.temp_id is None and not root:
        raise MalformedRelationshipError("A create entry must carry a temp_id", path=path)
    if operation is not Operation.CREATE and identity.durable_id is None:
        raise MalformedRelationshipError(
            f"A {operation} entry must carry an id, not a temp_id", path=path
        )
    return operation
