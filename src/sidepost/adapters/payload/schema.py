"""Pydantic schema for the abstract inbound payload node.

A node looks like::

    {
        "type": "tags",
        "identity": {"id": "12"} | {"temp_id": "abc"},
        "operation": "update",
        "attributes": {...},
        "relationships": {"name": node | [node, ...]},
    }

``id`` / ``temp_id`` (or ``temp-id``) may also sit directly on the node,
``method`` is accepted for ``operation``, and an ``id`` inside
``attributes`` is used when no other durable id is given.
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar, Self

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from sidepost.domain.model import Operation

log = logging.getLogger(__name__)


def _coerce_key(value: object) -> object:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class PayloadBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)
    _logged_extra_keys: ClassVar[set[str]] = set()

    def model_post_init(self, _context: object, /) -> None:
        extras = self.__pydantic_extra__
        if not extras:
            return
        new_keys = set(extras).difference(self._logged_extra_keys)
        if not new_keys:
            return
        self._logged_extra_keys.update(new_keys)
        log.warning(
            "Payload %s: ignoring unmodeled keys: %s",
            type(self).__name__,
            ", ".join(sorted(new_keys)),
        )


class IdentityPayload(PayloadBaseModel):
    id: str | None = None
    temp_id: str | None = Field(default=None, validation_alias=AliasChoices("temp_id", "temp-id"))

    @field_validator("id", "temp_id", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        return _coerce_key(value)


class NodePayload(PayloadBaseModel):
    type: str | None = None
    identity: IdentityPayload = Field(default_factory=IdentityPayload)
    id: str | None = None
    temp_id: str | None = Field(default=None, validation_alias=AliasChoices("temp_id", "temp-id"))
    operation: Operation | None = Field(
        default=None, validation_alias=AliasChoices("operation", "method")
    )
    attributes: dict[str, Any] = Field(default_factory=dict)
    relationships: dict[str, NodePayload | list[NodePayload]] = Field(default_factory=dict)

    @field_validator("id", "temp_id", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        return _coerce_key(value)

    @model_validator(mode="after")
    def _merge_identity(self) -> Self:
        durable_id = _pick("id", self.identity.id, self.id)
        if durable_id is None and self.attributes.get("id") is not None:
            durable_id = str(self.attributes["id"])
        temp_id = _pick("temp_id", self.identity.temp_id, self.temp_id)
        self.identity = IdentityPayload(id=durable_id, temp_id=temp_id)
        self.id = durable_id
        self.temp_id = temp_id
        return self


def _pick(name: str, nested: str | None, shorthand: str | None) -> str | None:
    if nested is not None and shorthand is not None and nested != shorthand:
        raise ValueError(f"Conflicting {name} values: {nested!r} and {shorthand!r}")
    return nested if nested is not None else shorthand
