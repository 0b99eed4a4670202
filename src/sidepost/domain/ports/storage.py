"""Ports for the storage engine behind nested persistence."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from contextlib import AbstractContextManager

    from sidepost.domain.model import AssociationDescriptor, ResourceDescriptor, SaveResult


@dataclass(slots=True)
class TransactionScope:
    """Handle yielded by ``StorageAdapter.transaction``.

    Marking the scope rollback-only discards its writes on exit, where the
    adapter supports it.
    """

    resource_type: str
    rollback_only: bool = False

    def mark_rollback_only(self) -> None:
        self.rollback_only = True


@dataclass(frozen=True, slots=True)
class Embedding:
    """Locates an embedded record inside the object that contains it."""

    parent: object
    association: AssociationDescriptor


@runtime_checkable
class StorageAdapter(Protocol):
    """Capabilities the orchestrator needs from a storage engine.

    ``associate``/``disassociate`` receive the association as declared on its
    owning resource: for ``belongs_to`` kinds that is the child (the node that
    holds the foreign key), for every other kind it is the parent.
    """

    def new(self, resource: ResourceDescriptor, *, embedded_in: Embedding | None = None) -> object:
        """Return a fresh, unsaved instance of ``resource``."""
        ...

    def load(
        self, resource: ResourceDescriptor, key: str, *, embedded_in: Embedding | None = None
    ) -> object:
        """Return the record with primary key ``key`` or raise ``NotFoundError``."""
        ...

    def save(
        self, resource: ResourceDescriptor, obj: object, attributes: Mapping[str, object]
    ) -> SaveResult[object]:
        """Apply ``attributes`` and store ``obj`` unless it fails validation."""
        ...

    def delete(
        self, resource: ResourceDescriptor, key: str, *, embedded_in: Embedding | None = None
    ) -> None: ...

    def associate(self, parent: object, child: object, association: AssociationDescriptor) -> None:
        ...

    def disassociate(
        self, parent: object, child: object, association: AssociationDescriptor
    ) -> None: ...

    def transaction(
        self, resource: ResourceDescriptor
    ) -> AbstractContextManager[TransactionScope]:
        """Scope in which a whole tree is persisted; may be a passthrough.

        Commits on normal exit unless the scope was marked rollback-only.
        """
        ...

    def related(self, obj: object, association: AssociationDescriptor) -> Sequence[object]:
        """Read back the objects currently linked through ``association``."""
        ...
