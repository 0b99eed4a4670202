"""Transactionless in-memory storage adapter.

Records live in per-type dictionaries keyed by their primary key as text;
new records get sequential ids. Many-to-many links are kept in the parent's
``foreign_keys_attribute`` id array. Without transactions a failed request
keeps whatever was written before the failure.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from contextlib import contextmanager
from itertools import count
from typing import TYPE_CHECKING, cast

from sidepost.domain.errors import NotFoundError
from sidepost.domain.model import AssociationKind, SaveResult
from sidepost.domain.ports import TransactionScope
from sidepost.domain.sideposting.foreign_keys import KeySetUpdate, resolve_attributes

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

    from sidepost.domain.model import AssociationDescriptor, ResourceDescriptor
    from sidepost.domain.ports import Embedding

log = logging.getLogger(__name__)


class InMemoryStorageAdapter:
    """``StorageAdapter`` over plain Python objects.

    Resource models must be constructible without arguments and expose their
    attributes as plain instance attributes.
    """

    def __init__(self) -> None:
        self._tables: defaultdict[str, dict[str, object]] = defaultdict(dict)
        self._sequence = count(1)
        self._pending_embeddings: dict[int, Embedding] = {}
        self._embedded: set[int] = set()

    # Read-side helpers --------------------------------------------------------

    def add(self, resource: ResourceDescriptor, obj: object) -> object:
        """Store a ready-made record, assigning an id when it has none."""

        key = getattr(obj, resource.primary_key, None)
        if key is None:
            key = str(next(self._sequence))
            setattr(obj, resource.primary_key, key)
        self._tables[resource.type][str(key)] = obj
        return obj

    def get(self, resource_type: str, key: object) -> object | None:
        return self._tables[resource_type].get(str(key))

    def records(self, resource_type: str) -> list[object]:
        return list(self._tables[resource_type].values())

    # Records ------------------------------------------------------------------

    def new(self, resource: ResourceDescriptor, *, embedded_in: Embedding | None = None) -> object:
        obj = resource.model()
        if embedded_in is not None:
            self._pending_embeddings[id(obj)] = embedded_in
        return obj

    def load(
        self,
        resource: ResourceDescriptor,
        key: str,
        *,
        embedded_in: Embedding | None = None,
    ) -> object:
        if embedded_in is not None:
            return self._find_embedded(resource, key, embedded_in)
        obj = self.get(resource.type, key)
        if obj is None:
            raise NotFoundError(resource.type, key)
        return obj

    def save(
        self,
        resource: ResourceDescriptor,
        obj: object,
        attributes: Mapping[str, object],
    ) -> SaveResult[object]:
        current = {name: getattr(obj, name, None) for name in attributes}
        values = resolve_attributes(attributes, current)
        stored = self._is_stored(resource, obj) or id(obj) in self._embedded

        errors = resource.validate({**vars(obj), **values})
        if errors:
            if not stored:
                _apply(obj, values)
                self._pending_embeddings.pop(id(obj), None)
            return SaveResult(obj, errors)

        _apply(obj, values)
        embedding = self._pending_embeddings.pop(id(obj), None)
        if embedding is not None:
            if getattr(obj, resource.primary_key, None) is None:
                setattr(obj, resource.primary_key, str(next(self._sequence)))
            _attach(embedding, obj)
            self._embedded.add(id(obj))
        elif not stored:
            self.add(resource, obj)
        return SaveResult(obj)

    def delete(
        self,
        resource: ResourceDescriptor,
        key: str,
        *,
        embedded_in: Embedding | None = None,
    ) -> None:
        if embedded_in is not None:
            try:
                obj = self._find_embedded(resource, key, embedded_in)
            except NotFoundError:
                return
            _detach(embedded_in, obj)
            return
        if self._tables[resource.type].pop(str(key), None) is None:
            log.debug("%s %s already gone", resource.type, key)

    # Links --------------------------------------------------------------------

    def associate(
        self, parent: object, child: object, association: AssociationDescriptor
    ) -> None:
        match association.kind:
            case AssociationKind.MANY_TO_MANY:
                self._edit_key_set(parent, child, association, remove=False)
            case AssociationKind.HAS_MANY | AssociationKind.EMBEDS_MANY:
                collection = getattr(parent, association.name, None)
                if isinstance(collection, list) and not any(item is child for item in collection):
                    cast("list[object]", collection).append(child)
            case AssociationKind.HAS_ONE | AssociationKind.EMBEDS_ONE:
                if hasattr(parent, association.name):
                    setattr(parent, association.name, child)
            case AssociationKind.BELONGS_TO | AssociationKind.POLYMORPHIC_BELONGS_TO:
                if hasattr(child, association.name):
                    setattr(child, association.name, parent)

    def disassociate(
        self, parent: object, child: object, association: AssociationDescriptor
    ) -> None:
        match association.kind:
            case AssociationKind.MANY_TO_MANY:
                self._edit_key_set(parent, child, association, remove=True)
            case AssociationKind.HAS_MANY | AssociationKind.EMBEDS_MANY:
                collection = getattr(parent, association.name, None)
                if isinstance(collection, list):
                    collection[:] = [item for item in collection if item is not child]
            case AssociationKind.HAS_ONE | AssociationKind.EMBEDS_ONE:
                if getattr(parent, association.name, None) is child:
                    setattr(parent, association.name, None)
            case AssociationKind.BELONGS_TO | AssociationKind.POLYMORPHIC_BELONGS_TO:
                if getattr(child, association.name, None) is parent:
                    setattr(child, association.name, None)

    def related(self, obj: object, association: AssociationDescriptor) -> Sequence[object]:
        match association.kind:
            case AssociationKind.MANY_TO_MANY:
                keys = getattr(obj, association.foreign_keys_attribute or "", None) or ()
                target = association.target_type()
                return tuple(
                    record
                    for record in (self.get(target, key) for key in cast("list[str]", keys))
                    if record is not None
                )
            case AssociationKind.HAS_MANY | AssociationKind.HAS_ONE:
                own_key = getattr(obj, association.primary_key, None)
                return tuple(
                    record
                    for record in self.records(association.target_type())
                    if own_key is not None
                    and getattr(record, association.foreign_key or "", None) == own_key
                )
            case AssociationKind.BELONGS_TO:
                record = self.get(
                    association.target_type(), getattr(obj, association.foreign_key or "", None)
                )
                return () if record is None else (record,)
            case AssociationKind.POLYMORPHIC_BELONGS_TO:
                discriminator = getattr(obj, association.discriminator_attribute or "", None)
                try:
                    target = association.target_type(cast("str | None", discriminator))
                except KeyError:
                    return ()
                record = self.get(target, getattr(obj, association.foreign_key or "", None))
                return () if record is None else (record,)
            case AssociationKind.EMBEDS_MANY:
                return tuple(cast("list[object]", getattr(obj, association.name, None) or ()))
            case AssociationKind.EMBEDS_ONE:
                value = getattr(obj, association.name, None)
                return () if value is None else (value,)

    # Transactions -------------------------------------------------------------

    @contextmanager
    def transaction(self, resource: ResourceDescriptor) -> Iterator[TransactionScope]:
        scope = TransactionScope(resource_type=resource.type)
        yield scope
        if scope.rollback_only:
            log.warning(
                "In-memory storage cannot roll back; keeping partial %s writes", resource.type
            )

    # Helpers ------------------------------------------------------------------

    def _is_stored(self, resource: ResourceDescriptor, obj: object) -> bool:
        key = getattr(obj, resource.primary_key, None)
        return key is not None and self.get(resource.type, key) is obj

    def _find_embedded(
        self, resource: ResourceDescriptor, key: str, embedding: Embedding
    ) -> object:
        value = getattr(embedding.parent, embedding.association.name, None)
        items: list[object] = [value]
        if embedding.association.kind.is_collection:
            items = cast("list[object]", value or [])
        for item in items:
            if item is not None and str(getattr(item, resource.primary_key, None)) == str(key):
                self._embedded.add(id(item))
                return item
        raise NotFoundError(resource.type, key)

    @staticmethod
    def _edit_key_set(
        parent: object, child: object, association: AssociationDescriptor, *, remove: bool
    ) -> None:
        attribute = association.foreign_keys_attribute
        key = getattr(child, association.primary_key, None)
        if attribute is None or key is None:
            return
        update = KeySetUpdate(remove=(str(key),)) if remove else KeySetUpdate(add=(str(key),))
        setattr(parent, attribute, update.apply(getattr(parent, attribute, None)))


def _apply(obj: object, values: Mapping[str, object]) -> None:
    for name, value in values.items():
        setattr(obj, name, value)


def _attach(embedding: Embedding, obj: object) -> None:
    name = embedding.association.name
    if embedding.association.kind.is_collection:
        collection = getattr(embedding.parent, name, None)
        if collection is None:
            collection = []
            setattr(embedding.parent, name, collection)
        if not any(item is obj for item in cast("list[object]", collection)):
            cast("list[object]", collection).append(obj)
    else:
        setattr(embedding.parent, name, obj)


def _detach(embedding: Embedding, obj: object) -> None:
    name = embedding.association.name
    if embedding.association.kind.is_collection:
        collection = cast("list[object]", getattr(embedding.parent, name, None) or [])
        collection[:] = [item for item in collection if item is not obj]
    elif getattr(embedding.parent, name, None) is obj:
        setattr(embedding.parent, name, None)
