"""Unit-of-work boundary around one storage adapter."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from sidepost.domain.ports.storage import StorageAdapter


@runtime_checkable
class UnitOfWork(Protocol):
    """Scopes the storage adapter used for one request."""

    @property
    def storage(self) -> StorageAdapter: ...

    def __enter__(self) -> UnitOfWork: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
