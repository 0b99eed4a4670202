"""Relationship payload walker.

Splits the relationships of one payload node into the edges that must be
persisted before the node itself (belongs-to kinds, whose primary key the
node stores) and those persisted after it (everything else). Recursion into
grandchildren is left to the orchestrator; ``check_tree`` walks the whole
tree once up front so that configuration and input errors surface before
the first write.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sidepost.domain.errors import MalformedRelationshipError
from sidepost.domain.model import PayloadNode, infer_operation

if TYPE_CHECKING:
    from sidepost.domain.model import AssociationDescriptor, PayloadPath, ResourceDescriptor
    from sidepost.domain.registry import ResourceRegistry


@dataclass(frozen=True, slots=True)
class RelationshipEdge:
    """Direct-child edge: one association and the payload entries under it."""

    association: AssociationDescriptor
    target: ResourceDescriptor
    nodes: tuple[PayloadNode, ...]
    many: bool

    def paths(self, base: PayloadPath) -> tuple[PayloadPath, ...]:
        name = self.association.name
        if self.many:
            return tuple((*base, name, index) for index in range(len(self.nodes)))
        return ((*base, name),)


@dataclass(frozen=True, slots=True)
class NormalizedRelationships:
    pre: tuple[RelationshipEdge, ...] = ()
    post: tuple[RelationshipEdge, ...] = ()

    @property
    def edges(self) -> tuple[RelationshipEdge, ...]:
        return (*self.pre, *self.post)


def normalize(
    node: PayloadNode,
    resource: ResourceDescriptor,
    registry: ResourceRegistry,
    *,
    path: PayloadPath = (),
) -> NormalizedRelationships:
    """Classify the direct relationships of ``node`` in payload order."""

    pre: list[RelationshipEdge] = []
    post: list[RelationshipEdge] = []
    for name, value in node.relationships.items():
        association = registry.describe(resource.type, name)
        many = not isinstance(value, PayloadNode)
        if many != association.kind.is_collection:
            shape = "a list" if association.kind.is_collection else "a single entry"
            raise MalformedRelationshipError(
                f"Relationship '{name}' ({association.kind}) expects {shape}", path=(*path, name)
            )
        nodes = tuple(value) if many else (value,)
        if not nodes:
            continue

        for index, entry in enumerate(nodes):
            entry_path = (*path, name, index) if many else (*path, name)
            infer_operation(entry.identity, entry.operation, path=entry_path)

        edge = RelationshipEdge(
            association=association,
            target=_resolve_target(association, nodes[0], registry, path=(*path, name)),
            nodes=nodes,
            many=many,
        )
        if association.kind.resolves_before_parent:
            pre.append(edge)
        else:
            post.append(edge)
    return NormalizedRelationships(pre=tuple(pre), post=tuple(post))


def check_tree(
    node: PayloadNode,
    resource: ResourceDescriptor,
    registry: ResourceRegistry,
    *,
    path: PayloadPath = (),
    root: bool = True,
) -> None:
    """Normalise every level of the tree without touching storage.

    Every entry must be consistent with its operation, whether or not it went
    through the payload translator.
    """

    if root:
        infer_operation(node.identity, node.operation, path=path, root=True)
    for edge in normalize(node, resource, registry, path=path).edges:
        for child, child_path in zip(edge.nodes, edge.paths(path), strict=True):
            check_tree(child, edge.target, registry, path=child_path, root=False)


def _resolve_target(
    association: AssociationDescriptor,
    node: PayloadNode,
    registry: ResourceRegistry,
    *,
    path: PayloadPath,
) -> ResourceDescriptor:
    if not association.kind.is_polymorphic:
        return registry.target(association)

    tag = node.resource_type
    if tag is None:
        raise MalformedRelationshipError(
            f"Polymorphic relationship '{association.name}' needs a type on its entry", path=path
        )
    try:
        return registry.target(association, tag)
    except KeyError:
        pass
    try:
        association.discriminator_for(tag)
    except KeyError:
        raise MalformedRelationshipError(
            f"Type '{tag}' is not a valid target of '{association.name}'", path=path
        ) from None
    return registry.resource(tag)
