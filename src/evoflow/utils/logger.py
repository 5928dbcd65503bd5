from __future__ import annotations

import logging
import os

_ROOT = "evoflow"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_configured = False


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Return a logger under the `evoflow` namespace. The first call attaches a
    stream handler to the package root with the level from EVOFLOW_LOG_LEVEL.
    """
    global _configured
    root = logging.getLogger(_ROOT)
    if not _configured:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)
        root.setLevel(os.environ.get("EVOFLOW_LOG_LEVEL", "WARNING").upper())
        _configured = True
    if not name or name == _ROOT:
        return root
    if not name.startswith(_ROOT + "."):
        name = f"{_ROOT}.{name}"
    return logging.getLogger(name)


def set_level(level: int | str) -> None:
    get_logger().setLevel(level.upper() if isinstance(level, str) else level)
