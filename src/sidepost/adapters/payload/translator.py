"""Translate inbound payload mappings into domain payload trees."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import ValidationError

from sidepost.domain.errors import MalformedRelationshipError
from sidepost.domain.model import Identity, PayloadNode, infer_operation

from .schema import NodePayload

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sidepost.domain.model import PayloadPath


def translate_payload(raw: Mapping[str, object] | NodePayload) -> PayloadNode:
    """Validate ``raw`` and build the root ``PayloadNode``.

    Schema violations and identity/operation inconsistencies raise
    ``MalformedRelationshipError`` before anything can be written.
    """

    if isinstance(raw, NodePayload):
        document = raw
    else:
        try:
            document = NodePayload.model_validate(raw)
        except ValidationError as exc:
            details = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
                for error in exc.errors()
            )
            raise MalformedRelationshipError(f"Invalid payload: {details}") from exc
    return _translate(document, path=(), root=True)


def _translate(payload: NodePayload, *, path: PayloadPath, root: bool) -> PayloadNode:
    identity = Identity(durable_id=payload.identity.id, temp_id=payload.identity.temp_id)
    operation = infer_operation(identity, payload.operation, path=path, root=root)

    relationships: dict[str, PayloadNode | tuple[PayloadNode, ...]] = {}
    for name, value in payload.relationships.items():
        if isinstance(value, list):
            relationships[name] = tuple(
                _translate(entry, path=(*path, name, index), root=False)
                for index, entry in enumerate(value)
            )
        else:
            relationships[name] = _translate(value, path=(*path, name), root=False)

    return PayloadNode(
        operation=operation,
        identity=identity,
        attributes=dict(payload.attributes),
        relationships=relationships,
        resource_type=payload.type,
    )
