"""Logging setup for applications that run sidepost requests."""

from __future__ import annotations

import logging

from .env import env_log_level

LOG_LEVEL_VAR = "SIDEPOST_LOG_LEVEL"


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Send request logs to stderr.

    ``level`` falls back to ``SIDEPOST_LOG_LEVEL`` and then INFO. SQL emitted
    by the engine is only shown at DEBUG, where the per-node persistence steps
    are logged as well.
    """

    resolved = level if level is not None else env_log_level(LOG_LEVEL_VAR, default=logging.INFO)
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if resolved <= logging.DEBUG else logging.WARNING
    )
