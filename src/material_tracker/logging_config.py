from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
HANDLER_NAME = "material_tracker.console"

logger = logging.getLogger("material_tracker")


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if isinstance(resolved, int):
        return resolved
    return logging.INFO


def configure_app_logging(level: str | int = "INFO") -> logging.Handler:
    """Attach the console handler to the package logger and set its level.

    Output goes to stderr so command results on stdout stay clean. Calling
    this again reuses the handler it installed the first time, pointed at
    the current stderr.
    """
    logger.setLevel(_resolve_level(level))

    handler = next((h for h in logger.handlers if h.get_name() == HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.set_name(HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    else:
        handler.setStream(sys.stderr)
    return handler
