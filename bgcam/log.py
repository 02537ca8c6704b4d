"""Logging helpers for bgcam."""

import logging
from typing import Optional

_DEFAULT_FMT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_DEFAULT_DATEFMT = "%H:%M:%S"


def get_logger(
    name: str = "bgcam",
    level: Optional[str | int] = None,
    fmt: str = _DEFAULT_FMT,
    datefmt: str = _DEFAULT_DATEFMT,
) -> logging.Logger:
    """Create or reuse a logger with a single stream handler.

    Child loggers (``bgcam.loop``, ``bgcam.camera``) propagate to the
    ``bgcam`` logger, so only the root of the package gets a handler.

    Args:
        name: Logger name
        level: Level name or number; None leaves the current level alone
        fmt: Record format
        datefmt: Timestamp format

    Returns:
        Configured logger
    """
    log = logging.getLogger(name)

    if level is not None:
        lvl = level if isinstance(level, int) else getattr(logging, str(level).upper(), logging.INFO)
        log.setLevel(lvl)

    if name == "bgcam" and not any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in log.handlers
    ):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
        log.addHandler(handler)

    return log
