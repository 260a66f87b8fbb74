"""Process-wide logging setup for the API and the CLI."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_HANDLER_NAME = "umbil"


def configure_logging(level: str = "INFO") -> None:
    """Attach one stream handler to the ``umbil`` logger.

    Safe to call more than once; later calls only update the level.
    """
    logger = logging.getLogger("umbil")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if any(h.get_name() == _HANDLER_NAME for h in logger.handlers):
        return

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
