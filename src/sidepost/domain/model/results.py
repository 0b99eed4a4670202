"""Result types produced while persisting and verifying a payload tree."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Generic, TypeAlias, TypeVar

from sidepost.domain.errors import ValidationFailedError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sidepost.domain.model.enums import Operation

FieldErrors: TypeAlias = Mapping[str, tuple[str, ...]]
ErrorPath: TypeAlias = tuple[str | int, ...]

T = TypeVar("T")

NO_ERRORS: FieldErrors = MappingProxyType({})


@dataclass(frozen=True, slots=True)
class SaveResult(Generic[T]):
    """Explicit outcome of an adapter ``save``: the object plus its field errors."""

    object: T
    errors: FieldErrors = field(default_factory=lambda: NO_ERRORS)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass(slots=True, kw_only=True)
class PersistResult:
    """Outcome for one payload node.

    ``object`` is ``None`` when the node was destroyed or its durable id could
    not be loaded; ``key`` is its primary key once stored. ``temp_id`` is
    carried over from the create entry so the aggregator can correlate it
    with the payload.
    """

    resource_type: str
    operation: Operation
    object: object | None = None
    key: object | None = None
    temp_id: str | None = None
    errors: FieldErrors = field(default_factory=lambda: NO_ERRORS)
    children: dict[str, PersistResult | tuple[PersistResult, ...]] = field(
        default_factory=dict["str", "PersistResult | tuple[PersistResult, ...]"]
    )

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def resolved(self) -> bool:
        return self.object is not None

    def walk(self) -> Iterator[PersistResult]:
        """Depth-first iteration over this result and all of its descendants."""

        yield self
        for value in self.children.values():
            if isinstance(value, PersistResult):
                yield from value.walk()
            else:
                for child in value:
                    yield from child.walk()


@dataclass(frozen=True, slots=True)
class ValidationVerdict:
    """Pass/fail verdict for a whole tree plus the errors of every failing node."""

    valid: bool
    object: object | None
    errors: Mapping[ErrorPath, FieldErrors] = field(
        default_factory=dict["ErrorPath", "FieldErrors"]
    )

    def errors_for(self, path: ErrorPath = ()) -> FieldErrors:
        return self.errors.get(path, NO_ERRORS)

    def as_tuple(self) -> tuple[object | None, bool]:
        return self.object, self.valid

    def raise_if_invalid(self) -> ValidationVerdict:
        if not self.valid:
            raise ValidationFailedError(self)
        return self

    @staticmethod
    def format_path(path: ErrorPath) -> str:
        if not path:
            return "<root>"
        return ".".join(str(part) for part in path)
