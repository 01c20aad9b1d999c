"""Logging setup shared by the API server and the sweep CLI."""

import logging
import sys

LOGGER_NAME = "revisit"

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Attach a stream handler to the application logger once."""
    global _configured
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if _configured:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
    ))
    logger.addHandler(handler)
    _configured = True
