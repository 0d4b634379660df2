"""Central logging utilities for PolicyGuard.

Security telemetry travels as ordinary log records. Structured event data is
attached through ``extra={"metadata": {...}}`` and rendered by
:class:`MetadataFormatter` after the message, so handlers that do not know
about it still print a clean line.

Key Features
------------
1. configure_logging(): idempotent setup of the ``policy_guard`` logger tree.
2. reset_logging(): remove installed handlers so tests can reconfigure.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Final

from beartype import beartype

__all__: Final = [
    "MetadataFormatter",
    "configure_logging",
    "reset_logging",
]

DEFAULT_LOG_FORMAT: Final = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
ROOT_LOGGER_NAME: Final = "policy_guard"

_handler: logging.Handler | None = None


class MetadataFormatter(logging.Formatter):
    """Formatter that appends a record's ``metadata`` mapping as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        metadata: dict[str, Any] | None = getattr(record, "metadata", None)
        if not metadata:
            return line
        return f"{line} | {json.dumps(metadata, default=str, sort_keys=True)}"


@beartype
def configure_logging(
    *, level: int | None = None, fmt: str = DEFAULT_LOG_FORMAT
) -> logging.Logger:
    """Attach a metadata-aware stream handler to the package logger once.

    Later calls only adjust the level, and only when one is given.
    """
    global _handler
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if level is not None:
        root.setLevel(level)

    if _handler is None:
        if level is None:
            root.setLevel(logging.INFO)
        _handler = logging.StreamHandler()
        _handler.setFormatter(MetadataFormatter(fmt))
        root.addHandler(_handler)

    return root


@beartype
def reset_logging() -> None:
    """Detach the handler installed by :func:`configure_logging`."""
    global _handler
    if _handler is not None:
        logging.getLogger(ROOT_LOGGER_NAME).removeHandler(_handler)
        _handler = None
