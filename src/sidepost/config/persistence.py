"""Policy knobs for nested persistence requests."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_flag


@dataclass(frozen=True, slots=True)
class PersistencePolicy:
    """How a request reacts to field-level validation failures.

    ``rollback_on_invalid`` discards every write of a request whose verdict is
    invalid. When disabled, valid branches are committed and only the failing
    nodes are left unsaved. Adapters without transactions always keep their
    partial writes.
    """

    rollback_on_invalid: bool = True
    log_payloads: bool = False


def get_persistence_policy() -> PersistencePolicy:
    return PersistencePolicy(
        rollback_on_invalid=env_flag("SIDEPOST_ROLLBACK_ON_INVALID", default=True),
        log_payloads=env_flag("SIDEPOST_LOG_PAYLOADS", default=False),
    )
