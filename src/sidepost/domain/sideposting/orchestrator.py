"""Persistence orchestrator: saves a payload tree depth-first.

Belongs-to relationships are processed before the node that references them
since their primary key must be known first; every other relationship is
processed after the node. Per node:

1. persist belongs-to parents
2. write their primary keys into the node's attributes
3. persist the node itself
4. associate it with its parents
5. persist children, wiring the node's primary key into each of them
6. associate the children
7. return the result (no object when destroyed)

A many-to-many entry being destroyed is first unlinked from its parent so no
id array keeps pointing at it.

Field-level validation failures never stop the walk; they are recorded on
the node's result and folded into the verdict by the validation aggregator.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TypeAlias

from sidepost.domain.errors import NotFoundError
from sidepost.domain.model import AssociationKind, Operation, PersistResult
from sidepost.domain.ports import Embedding
from sidepost.domain.sideposting.cache import RequestCache
from sidepost.domain.sideposting.foreign_keys import rewrite_foreign_keys
from sidepost.domain.sideposting.walker import RelationshipEdge, check_tree, normalize

if TYPE_CHECKING:
    from sidepost.domain.model import (
        AssociationDescriptor,
        PayloadNode,
        PayloadPath,
        ResourceDescriptor,
        SaveResult,
    )
    from sidepost.domain.ports import StorageAdapter
    from sidepost.domain.registry import ResourceRegistry

log = logging.getLogger(__name__)

_ResolvedEdge: TypeAlias = tuple[RelationshipEdge, tuple[PersistResult, ...]]


class PersistenceOrchestrator:
    """Walks one request's payload tree against a storage adapter.

    An orchestrator owns the request cache, so use one instance per request.
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        storage: StorageAdapter,
        *,
        cache: RequestCache | None = None,
    ) -> None:
        self.registry = registry
        self.storage = storage
        self.cache = cache or RequestCache()

    def run(self, node: PayloadNode, resource: ResourceDescriptor) -> PersistResult:
        """Check the whole tree for input errors, then persist it from the root."""

        check_tree(node, resource, self.registry)
        return self.persist(node, resource)

    def persist(
        self,
        node: PayloadNode,
        resource: ResourceDescriptor,
        parent: PersistResult | None = None,
        *,
        association: AssociationDescriptor | None = None,
        path: PayloadPath = (),
    ) -> PersistResult:
        relationships = normalize(node, resource, self.registry, path=path)

        parents = [self._resolve_edge(edge, path=path) for edge in relationships.pre]
        for edge, results in parents:
            for parent_result in results:
                rewrite_foreign_keys(
                    node.attributes,
                    edge.association,
                    key=parent_result.key,
                    severs=parent_result.operation.severs_link,
                    discriminator=self._discriminator(edge),
                )

        embedded_in = None
        if association is not None and association.kind.is_embedded and parent is not None:
            if parent.object is None:
                log.warning(
                    "Skipping embedded %s at %s: containing record is absent",
                    resource.type,
                    _format(path),
                )
                return PersistResult(
                    resource_type=resource.type,
                    operation=node.effective_operation,
                    temp_id=node.temp_id,
                )
            embedded_in = Embedding(parent=parent.object, association=association)

        result = self._persist_object(
            node,
            resource,
            embedded_in=embedded_in,
            path=path,
            parent=parent,
            association=association,
        )
        for edge, results in parents:
            for parent_result in results:
                self._link(parent_result, result, edge.association)

        children = [
            self._resolve_edge(edge, path=path, parent=result)
            for edge in relationships.post
        ]
        for edge, results in children:
            for child_result in results:
                self._link(result, child_result, edge.association)

        for edge, results in (*parents, *children):
            result.children[edge.association.name] = results if edge.many else results[0]
        return result

    def _resolve_edge(
        self,
        edge: RelationshipEdge,
        *,
        path: PayloadPath,
        parent: PersistResult | None = None,
    ) -> _ResolvedEdge:
        results: list[PersistResult] = []
        for child, child_path in zip(edge.nodes, edge.paths(path), strict=True):
            if parent is not None:
                rewrite_foreign_keys(
                    child.attributes,
                    edge.association,
                    key=parent.key,
                    severs=child.severs_link,
                )
            results.append(
                self.persist(
                    child,
                    edge.target,
                    parent,
                    association=edge.association,
                    path=child_path,
                )
            )
        return edge, tuple(results)

    def _persist_object(
        self,
        node: PayloadNode,
        resource: ResourceDescriptor,
        *,
        embedded_in: Embedding | None,
        path: PayloadPath,
        parent: PersistResult | None = None,
        association: AssociationDescriptor | None = None,
    ) -> PersistResult:
        operation = node.effective_operation
        attributes = {
            name: value for name, value in node.attributes.items() if name != resource.primary_key
        }
        log.debug("%s %s at %s", operation, resource.type, _format(path))

        if operation is Operation.CREATE:
            obj = self.cache.get_temp(resource.type, node.temp_id) if node.temp_id else None
            if obj is None:
                obj = self.storage.new(resource, embedded_in=embedded_in)
                if node.durable_id is not None:
                    attributes[resource.primary_key] = node.durable_id
            saved = self.storage.save(resource, obj, attributes)
            self.cache.remember(
                resource.type,
                saved.object,
                key=getattr(saved.object, resource.primary_key, None) if saved.ok else None,
                temp_id=node.temp_id,
            )
            return self._result(resource, node, operation, saved, path)

        key = node.durable_id
        if key is None:
            raise ValueError(f"{operation} of {resource.type} without an id at {_format(path)}")

        if operation is Operation.DESTROY:
            if (
                parent is not None
                and association is not None
                and association.kind is AssociationKind.MANY_TO_MANY
            ):
                self._unlink_destroyed(parent, resource, key, association)
            self.storage.delete(resource, key, embedded_in=embedded_in)
            self.cache.forget(resource.type, key)
            return PersistResult(
                resource_type=resource.type, operation=operation, temp_id=node.temp_id
            )

        try:
            obj = self._load(resource, key, embedded_in=embedded_in)
        except NotFoundError:
            log.warning("Could not resolve %s %s at %s", resource.type, key, _format(path))
            return PersistResult(
                resource_type=resource.type, operation=operation, temp_id=node.temp_id
            )
        saved = self.storage.save(resource, obj, attributes)
        return self._result(resource, node, operation, saved, path)

    def _load(
        self, resource: ResourceDescriptor, key: str, *, embedded_in: Embedding | None
    ) -> object:
        cached = self.cache.get(resource.type, key)
        if cached is not None:
            return cached
        obj = self.storage.load(resource, key, embedded_in=embedded_in)
        self.cache.remember(resource.type, obj, key=key)
        return obj

    def _unlink_destroyed(
        self,
        parent: PersistResult,
        resource: ResourceDescriptor,
        key: str,
        association: AssociationDescriptor,
    ) -> None:
        """Drop a many-to-many record about to be destroyed from its parent's links."""

        if parent.object is None:
            return
        try:
            obj = self._load(resource, key, embedded_in=None)
        except NotFoundError:
            return
        self.storage.disassociate(parent.object, obj, association)

    def _link(
        self, parent: PersistResult, child: PersistResult, association: AssociationDescriptor
    ) -> None:
        """Associate (or disassociate) two resolved objects.

        ``parent`` is the side whose primary key the other side stores.
        """

        if parent.object is None or child.object is None:
            return
        if not (parent.ok and child.ok):
            return
        severing = child if not association.kind.resolves_before_parent else parent
        if severing.operation is Operation.DISASSOCIATE:
            self.storage.disassociate(parent.object, child.object, association)
        else:
            self.storage.associate(parent.object, child.object, association)

    def _result(
        self,
        resource: ResourceDescriptor,
        node: PayloadNode,
        operation: Operation,
        saved: SaveResult[object],
        path: PayloadPath,
    ) -> PersistResult:
        result = PersistResult(
            resource_type=resource.type,
            operation=operation,
            object=saved.object,
            key=getattr(saved.object, resource.primary_key, None),
            temp_id=node.temp_id,
            errors=saved.errors,
        )
        if not saved.ok:
            log.warning(
                "Validation failed for %s at %s: %s",
                resource.type,
                _format(path),
                ", ".join(sorted(result.errors)),
            )
        return result

    @staticmethod
    def _discriminator(edge: RelationshipEdge) -> str | None:
        if not edge.association.kind.is_polymorphic:
            return None
        return edge.association.discriminator_for(edge.target.type)


def _format(path: PayloadPath) -> str:
    return ".".join(str(part) for part in path) if path else "<root>"
