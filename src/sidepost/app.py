"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from sidepost.adapters.payload import translate_payload
from sidepost.config import get_persistence_policy
from sidepost.domain.errors import MalformedRelationshipError
from sidepost.domain.ports.unit_of_work import UnitOfWork
from sidepost.domain.sideposting import PersistenceOrchestrator, verify

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sidepost.adapters.payload import NodePayload
    from sidepost.config import PersistencePolicy
    from sidepost.domain.model import PayloadNode, ResourceDescriptor, ValidationVerdict
    from sidepost.domain.ports import StorageAdapter
    from sidepost.domain.registry import ResourceRegistry

UnitOfWorkFactory = Callable[[], UnitOfWork]


log = getLogger(__name__)


def persist_document(
    resource_type: str,
    payload: Mapping[str, object] | NodePayload,
    *,
    registry: ResourceRegistry,
    storage: StorageAdapter | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    policy: PersistencePolicy | None = None,
) -> ValidationVerdict:
    """Persist a nested write request rooted at ``resource_type``.

    Without an explicit ``storage`` a unit of work is opened (the SQLAlchemy
    one by default, which needs ``startup()`` first). Malformed input and
    unmatched identities raise; field-level failures are reported in the
    returned verdict and, under the default policy, roll the request back.
    """

    effective_policy = policy or get_persistence_policy()
    resource = registry.resource(resource_type)
    node = translate_payload(payload)
    if node.resource_type is not None and node.resource_type != resource.type:
        raise MalformedRelationshipError(
            f"Payload type '{node.resource_type}' does not match '{resource.type}'"
        )
    if effective_policy.log_payloads:
        log.debug("Payload for %s: %r", resource.type, payload)

    log.info(
        "Starting %s request: operation=%s, id=%s, temp_id=%s",
        resource.type,
        node.effective_operation,
        node.durable_id,
        node.temp_id,
    )
    if storage is not None:
        verdict = _persist(node, resource, registry, storage, effective_policy)
    else:
        if unit_of_work_factory is None:
            from sidepost.adapters.sqlalchemy import SqlAlchemyUnitOfWork  # noqa: PLC0415

            unit_of_work_factory = SqlAlchemyUnitOfWork
        with unit_of_work_factory() as uow:
            verdict = _persist(node, resource, registry, uow.storage, effective_policy)

    log.info(
        f"Finished {resource.type} request: valid={verdict.valid}, "
        f"failing={[verdict.format_path(path) for path in verdict.errors]}"
    )
    return verdict


def _persist(
    node: PayloadNode,
    resource: ResourceDescriptor,
    registry: ResourceRegistry,
    storage: StorageAdapter,
    policy: PersistencePolicy,
) -> ValidationVerdict:
    orchestrator = PersistenceOrchestrator(registry, storage)
    with storage.transaction(resource) as scope:
        result = orchestrator.run(node, resource)
        verdict = verify(result, node)
        if not verdict.valid and policy.rollback_on_invalid:
            scope.mark_rollback_only()
    return verdict
