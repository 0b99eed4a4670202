"""Foreign-key wiring policy, one switch over ``AssociationKind``.

The orchestrator calls ``rewrite_foreign_keys`` for every resolved edge
before the node holding the key is saved:

- belongs_to / has_many / has_one: the key holder gets the other side's
  primary key, or ``None`` when the link is being cut
- polymorphic belongs_to: same, plus the discriminator
- many_to_many: the key holder's inverse id array gains (or loses) the
  primary key; the array is treated as a set
- embeds_*: nothing, containment already links the records
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sidepost.domain.model import AssociationKind

if TYPE_CHECKING:
    from sidepost.domain.model import AssociationDescriptor


@dataclass(frozen=True, slots=True)
class KeySetUpdate:
    """Pending change to an id array, resolved against the stored value on save."""

    add: tuple[str, ...] = ()
    remove: tuple[str, ...] = ()

    def adding(self, key: str) -> KeySetUpdate:
        return KeySetUpdate(
            add=(*[k for k in self.add if k != key], key),
            remove=tuple(k for k in self.remove if k != key),
        )

    def removing(self, key: str) -> KeySetUpdate:
        return KeySetUpdate(
            add=tuple(k for k in self.add if k != key),
            remove=(*[k for k in self.remove if k != key], key),
        )

    def apply(self, current: Iterable[object] | None) -> list[str]:
        keys: list[str] = []
        for key in (*(str(value) for value in current or ()), *self.add):
            if key not in keys and key not in self.remove:
                keys.append(key)
        return keys


def rewrite_foreign_keys(
    attributes: dict[str, object],
    association: AssociationDescriptor,
    *,
    key: object | None,
    severs: bool,
    discriminator: str | None = None,
) -> None:
    """Write the other side's primary key ``key`` into ``attributes``.

    An unresolved other side (``key`` is ``None``) leaves the attributes alone
    unless the link is being cut.
    """

    if key is None and not severs:
        return
    foreign_key = association.foreign_key
    match association.kind:
        case AssociationKind.EMBEDS_MANY | AssociationKind.EMBEDS_ONE:
            return
        case AssociationKind.MANY_TO_MANY:
            if foreign_key is None or key is None:
                return
            attributes[foreign_key] = _update_key_set(
                attributes.get(foreign_key), str(key), remove=severs
            )
        case AssociationKind.POLYMORPHIC_BELONGS_TO:
            if foreign_key is None or association.discriminator_attribute is None:
                raise ValueError(f"Polymorphic association '{association.name}' is incomplete")
            attributes[foreign_key] = None if severs else key
            attributes[association.discriminator_attribute] = None if severs else discriminator
        case AssociationKind.BELONGS_TO | AssociationKind.HAS_MANY | AssociationKind.HAS_ONE:
            if foreign_key is None:
                raise ValueError(f"Association '{association.name}' has no foreign key")
            attributes[foreign_key] = None if severs else key


def resolve_attributes(
    attributes: Mapping[str, object], current: Mapping[str, object]
) -> dict[str, object]:
    """Return ``attributes`` with pending id-array updates applied to ``current``."""

    resolved: dict[str, object] = {}
    for name, value in attributes.items():
        if isinstance(value, KeySetUpdate):
            stored = current.get(name)
            resolved[name] = value.apply(
                stored if isinstance(stored, Iterable) and not isinstance(stored, str) else None
            )
        else:
            resolved[name] = value
    return resolved


def _update_key_set(existing: object, key: str, *, remove: bool) -> object:
    if isinstance(existing, KeySetUpdate):
        return existing.removing(key) if remove else existing.adding(key)
    if isinstance(existing, (list, tuple)):
        # an explicit array in the payload is authoritative; edit it in place
        explicit = KeySetUpdate(remove=(key,)) if remove else KeySetUpdate(add=(key,))
        return explicit.apply(existing)
    return KeySetUpdate(remove=(key,)) if remove else KeySetUpdate(add=(key,))
