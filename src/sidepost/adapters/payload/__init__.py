"""Public interface for the inbound payload adapter."""

from __future__ import annotations

from .schema import IdentityPayload, NodePayload
from .translator import translate_payload

__all__ = [
    "IdentityPayload",
    "NodePayload",
    "translate_payload",
]
