"""Storage adapter backed by a SQLAlchemy session.

Resources map onto imperatively (or declaratively) mapped classes; the
association name must match the relationship property on the owning class
where one exists. Foreign-key columns are always written through the
attribute map, so a relationship property is optional for ``belongs_to``
and polymorphic associations.

Embedded records are owned child rows: they join the containing record's
collection once saved and are removed from it on destroy, which the mapping
is expected to cascade (``delete-orphan``).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError

from sidepost.domain.errors import NotFoundError, StorageError
from sidepost.domain.model import AssociationKind, SaveResult
from sidepost.domain.ports import TransactionScope
from sidepost.domain.sideposting.foreign_keys import resolve_attributes

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

    from sqlalchemy.orm import Mapper, RelationshipProperty, Session

    from sidepost.domain.model import AssociationDescriptor, ResourceDescriptor
    from sidepost.domain.ports import Embedding

log = logging.getLogger(__name__)


class SqlAlchemyStorageAdapter:
    """Session-bound ``StorageAdapter``; one instance per unit of work."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self._pending_embeddings: dict[int, Embedding] = {}

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
        obj = self.session.get(resource.model, self._coerce_key(resource, key))
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
        if resource.primary_key in values:
            values[resource.primary_key] = self._coerce_key(resource, values[resource.primary_key])

        errors = resource.validate({**self._column_values(obj), **values})
        state = sa_inspect(obj)
        if errors:
            if state.transient:
                # never added to the session; keep the submitted values for the caller
                self._apply(obj, values)
                self._pending_embeddings.pop(id(obj), None)
            return SaveResult(obj, errors)

        self._apply(obj, values)
        embedding = self._pending_embeddings.pop(id(obj), None)
        if embedding is not None:
            self._attach(embedding, obj)
        elif state.transient:
            self.session.add(obj)
        self._flush(f"save {resource.type}")
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
                log.debug("Embedded %s %s already gone", resource.type, key)
                return
            self._detach(embedded_in, obj)
        else:
            try:
                obj = self.load(resource, key)
            except NotFoundError:
                log.debug("%s %s already gone", resource.type, key)
                return
        self.session.delete(obj)
        self._flush(f"delete {resource.type}")

    # Links --------------------------------------------------------------------

    def associate(
        self, parent: object, child: object, association: AssociationDescriptor
    ) -> None:
        match association.kind:
            case (
                AssociationKind.HAS_MANY
                | AssociationKind.MANY_TO_MANY
                | AssociationKind.EMBEDS_MANY
            ):
                if _relationship(parent, association.name) is None:
                    return
                collection = cast("list[object]", getattr(parent, association.name))
                if not any(item is child for item in collection):
                    collection.append(child)
            case AssociationKind.HAS_ONE | AssociationKind.EMBEDS_ONE:
                if _relationship(parent, association.name) is not None:
                    setattr(parent, association.name, child)
            case AssociationKind.BELONGS_TO | AssociationKind.POLYMORPHIC_BELONGS_TO:
                if _relationship(child, association.name) is not None:
                    setattr(child, association.name, parent)

    def disassociate(
        self, parent: object, child: object, association: AssociationDescriptor
    ) -> None:
        match association.kind:
            case (
                AssociationKind.HAS_MANY
                | AssociationKind.MANY_TO_MANY
                | AssociationKind.EMBEDS_MANY
            ):
                if _relationship(parent, association.name) is None:
                    return
                collection = cast("list[object]", getattr(parent, association.name))
                for item in list(collection):
                    if item is child:
                        collection.remove(item)
            case AssociationKind.HAS_ONE | AssociationKind.EMBEDS_ONE:
                if (
                    _relationship(parent, association.name) is not None
                    and getattr(parent, association.name) is child
                ):
                    setattr(parent, association.name, None)
            case AssociationKind.BELONGS_TO | AssociationKind.POLYMORPHIC_BELONGS_TO:
                if (
                    _relationship(child, association.name) is not None
                    and getattr(child, association.name) is parent
                ):
                    setattr(child, association.name, None)

    def related(self, obj: object, association: AssociationDescriptor) -> Sequence[object]:
        if _relationship(obj, association.name) is None:
            return ()
        value = getattr(obj, association.name)
        if association.kind.is_collection:
            return tuple(cast("list[object]", value))
        return () if value is None else (value,)

    # Transactions -------------------------------------------------------------

    @contextmanager
    def transaction(self, resource: ResourceDescriptor) -> Iterator[TransactionScope]:
        scope = TransactionScope(resource_type=resource.type)
        try:
            yield scope
        except BaseException:
            log.debug("Rolling back %s request after an error", resource.type)
            self.session.rollback()
            raise
        if scope.rollback_only:
            log.info("Rolling back %s request", resource.type)
            self.session.rollback()
            return
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError(f"Could not commit {resource.type} request: {exc}") from exc

    # Helpers ------------------------------------------------------------------

    def _flush(self, action: str) -> None:
        try:
            self.session.flush()
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not {action}: {exc}") from exc

    def _find_embedded(
        self, resource: ResourceDescriptor, key: str, embedding: Embedding
    ) -> object:
        value = getattr(embedding.parent, embedding.association.name, None)
        items: list[object] = [value]
        if embedding.association.kind.is_collection:
            items = cast("list[object]", value)
        for item in items:
            if item is not None and str(getattr(item, resource.primary_key, None)) == str(key):
                return item
        raise NotFoundError(resource.type, key)

    @staticmethod
    def _attach(embedding: Embedding, obj: object) -> None:
        name = embedding.association.name
        if embedding.association.kind.is_collection:
            collection = cast("list[object]", getattr(embedding.parent, name))
            if not any(item is obj for item in collection):
                collection.append(obj)
        else:
            setattr(embedding.parent, name, obj)

    @staticmethod
    def _detach(embedding: Embedding, obj: object) -> None:
        name = embedding.association.name
        if embedding.association.kind.is_collection:
            collection = cast("list[object]", getattr(embedding.parent, name))
            for item in list(collection):
                if item is obj:
                    collection.remove(item)
        elif getattr(embedding.parent, name) is obj:
            setattr(embedding.parent, name, None)

    @staticmethod
    def _apply(obj: object, values: Mapping[str, object]) -> None:
        for name, value in values.items():
            setattr(obj, name, value)

    @staticmethod
    def _column_values(obj: object) -> dict[str, object]:
        mapper = cast("Mapper[Any]", sa_inspect(type(obj)))
        return {prop.key: getattr(obj, prop.key, None) for prop in mapper.column_attrs}

    @staticmethod
    def _coerce_key(resource: ResourceDescriptor, key: object) -> object:
        """Convert a textual durable id to the primary-key column's Python type."""

        mapper = cast("Mapper[Any]", sa_inspect(resource.model))
        column = mapper.get_property(resource.primary_key).columns[0]
        try:
            python_type: type[Any] = column.type.python_type
        except NotImplementedError:
            return key
        if isinstance(key, python_type):
            return key
        try:
            return python_type(key)
        except (TypeError, ValueError) as exc:
            raise NotFoundError(resource.type, key) from exc


def _relationship(obj: object, name: str) -> RelationshipProperty[Any] | None:
    mapper = cast("Mapper[Any]", sa_inspect(type(obj)))
    return mapper.relationships.get(name)
