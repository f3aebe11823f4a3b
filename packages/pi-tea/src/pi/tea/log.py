"""Logging to a file while the terminal belongs to the program.

Anything written to stderr would corrupt the rendered frame, so debug output
has to go elsewhere::

    if os.environ.get("DEBUG"):
        log_to_file("debug.log", "app")
"""

from __future__ import annotations

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def log_to_file(
    path: str | Path,
    prefix: str = "",
    level: int = logging.DEBUG,
    logger: logging.Logger | None = None,
) -> logging.FileHandler:
    """Attach a file handler to *logger* (the root logger by default).

    Returns the handler so callers can remove and close it when done.
    """
    fmt = f"{prefix} {LOG_FORMAT}" if prefix else LOG_FORMAT
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(fmt))
    handler.setLevel(level)

    target = logger if logger is not None else logging.getLogger()
    target.addHandler(handler)
    if target.level == logging.NOTSET or target.level > level:
        target.setLevel(level)
    return handler
