"""Environment variable loaders for configuration."""

from __future__ import annotations

import logging
import os
from typing import Final

from .errors import ConfigurationError

_TRUE_VALUES: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})


def env_flag(name: str, *, default: bool) -> bool:
    """Read a boolean flag, falling back to ``default`` when unset or blank."""

    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    normalized = raw.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid boolean for {name}: {raw!r}")


def env_log_level(name: str, *, default: int) -> int:
    """Read a logging level given by name (``debug``) or number (``10``)."""

    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    normalized = raw.strip().upper()
    if normalized.isdigit():
        return int(normalized)
    level = logging.getLevelNamesMapping().get(normalized)
    if level is None:
        raise ConfigurationError(f"Invalid log level for {name}: {raw!r}")
    return level
