"""Root logger setup for the CLI and other entry points."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# libraries that log every statement or request at INFO/DEBUG
_QUIET_LOGGERS = ("sqlalchemy.engine", "httpx")


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Send records at ``level`` and above to stderr, timestamped to the second.

    Engine and HTTP client chatter stays at WARNING even with ``--verbose``.
    ``force=True`` replaces handlers that are already installed.
    """

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S", force=force)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
