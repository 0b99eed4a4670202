"""Request-scoped cache of resolved objects."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class RequestCache:
    """Objects resolved during one request, by durable id and by temp-id.

    Keeps one instance per entity for the lifetime of a request so that an
    entity referenced in several places is loaded once, and a temp-id seen
    twice resolves to the object created the first time.
    """

    _by_id: dict[tuple[str, str], object] = field(
        default_factory=dict["tuple[str, str]", "object"], repr=False
    )
    _by_temp_id: dict[tuple[str, str], object] = field(
        default_factory=dict["tuple[str, str]", "object"], repr=False
    )

    def __len__(self) -> int:
        return len(self._by_id) + len(self._by_temp_id)

    def get(self, resource_type: str, key: object) -> object | None:
        return self._by_id.get((resource_type, str(key)))

    def get_temp(self, resource_type: str, temp_id: str) -> object | None:
        return self._by_temp_id.get((resource_type, temp_id))

    def remember(
        self,
        resource_type: str,
        obj: object,
        *,
        key: object | None = None,
        temp_id: str | None = None,
    ) -> None:
        if key is not None:
            self._by_id[(resource_type, str(key))] = obj
        if temp_id is not None:
            self._by_temp_id[(resource_type, temp_id)] = obj

    def forget(self, resource_type: str, key: object) -> None:
        self._by_id.pop((resource_type, str(key)), None)
