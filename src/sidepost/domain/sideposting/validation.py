"""Validation aggregator.

Re-walks the original payload side by side with the persisted result tree
and folds every node's field errors into one verdict. Storage is never
touched: the result tree already holds the objects resolved for each parent.

Array relationships match entries to results by durable id (primary key as
text) or by temp-id. Records created in the same request only ever match
their temp-id, even when the store reuses a freed primary key. An id entry
without a match is an error unless it was destroyed or disassociated; a
temp-id entry must always match.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sidepost.domain.errors import UnidentifiedRelationshipItemError, UnmatchedIdentityError
from sidepost.domain.model import PayloadNode, PersistResult, ValidationVerdict

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from sidepost.domain.model import ErrorPath, FieldErrors

log = logging.getLogger(__name__)


def verify(result: PersistResult, payload: PayloadNode) -> ValidationVerdict:
    """Return the verdict for ``payload`` given the tree persisted for it."""

    errors: dict[ErrorPath, FieldErrors] = {}
    valid = _all_valid(result, payload, path=(), errors=errors)
    if not valid:
        log.info(
            "Payload for %s failed validation at: %s",
            result.resource_type,
            ", ".join(ValidationVerdict.format_path(path) for path in errors),
        )
    return ValidationVerdict(valid=valid, object=result.object, errors=errors)


def _all_valid(
    result: PersistResult,
    node: PayloadNode,
    *,
    path: ErrorPath,
    errors: dict[ErrorPath, FieldErrors],
) -> bool:
    valid = True
    if result.errors:
        errors[path] = result.errors
        valid = False

    for name, value in node.relationships.items():
        related = result.children.get(name)
        if isinstance(value, PayloadNode):
            child = related if isinstance(related, PersistResult) else None
            valid = _singular_valid(name, child, value, path=(*path, name), errors=errors) and valid
        else:
            candidates = related if isinstance(related, tuple) else ()
            valid = _many_valid(name, candidates, value, path=path, errors=errors) and valid
    return valid


def _singular_valid(
    name: str,
    child: PersistResult | None,
    entry: PayloadNode,
    *,
    path: ErrorPath,
    errors: dict[ErrorPath, FieldErrors],
) -> bool:
    if child is None or child.object is None:
        if entry.severs_link:
            # nothing left to validate below a destroyed or unlinked record
            return True
        if child is None or child.ok:
            raise UnmatchedIdentityError(name, durable_id=entry.durable_id, temp_id=entry.temp_id)
    return _all_valid(child, entry, path=path, errors=errors)


def _many_valid(
    name: str,
    candidates: Sequence[PersistResult],
    entries: Sequence[PayloadNode],
    *,
    path: ErrorPath,
    errors: dict[ErrorPath, FieldErrors],
) -> bool:
    with_id: list[tuple[int, PayloadNode]] = []
    with_temp_id: list[tuple[int, PayloadNode]] = []
    for index, entry in enumerate(entries):
        if entry.durable_id is not None:
            with_id.append((index, entry))
        elif entry.temp_id is not None:
            with_temp_id.append((index, entry))
        else:
            raise UnidentifiedRelationshipItemError(name)

    matched: set[int] = set()
    valid = True
    for index, entry in with_id:
        durable_id = entry.durable_id
        found = _take(
            candidates,
            matched,
            lambda candidate, key=durable_id: candidate.temp_id is None
            and candidate.object is not None
            and str(candidate.key) == key,
        )
        if found is None:
            if entry.severs_link:
                continue
            raise UnmatchedIdentityError(name, durable_id=durable_id)
        valid = _all_valid(found, entry, path=(*path, name, index), errors=errors) and valid

    for index, entry in with_temp_id:
        temp_id = entry.temp_id
        found = _take(
            candidates,
            matched,
            lambda candidate, key=temp_id: candidate.temp_id == key
            and (candidate.object is not None or not candidate.ok),
        )
        if found is None:
            raise UnmatchedIdentityError(name, temp_id=temp_id)
        valid = _all_valid(found, entry, path=(*path, name, index), errors=errors) and valid
    return valid


def _take(
    candidates: Sequence[PersistResult],
    matched: set[int],
    predicate: Callable[[PersistResult], bool],
) -> PersistResult | None:
    """Return the first unmatched candidate satisfying ``predicate`` and claim it."""

    for position, candidate in enumerate(candidates):
        if position in matched:
            continue
        if predicate(candidate):
            matched.add(position)
            return candidate
    return None
