"""JSON-lines logging for the ``weixinify`` logger tree.

Modules log through ``get_logger(__name__)``-style names under
``weixinify`` and attach structured context with
``extra={"extra_fields": {...}}``.  Each record becomes one line such as::

    {"ts": "...", "level": "DEBUG", "logger": "weixinify.upload",
     "message": "Built upload request", "path": "media/upload", "size": 2048}
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any


class StructuredFormatter(logging.Formatter):
    """Render a record as a JSON object with ``ts``, ``level``, ``logger``
    and ``message`` plus any ``extra_fields``; tracebacks go under
    ``exception``.  Chinese text is written as-is.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(getattr(record, "extra_fields", None) or {})
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


_handled: set[str] = set()


def get_logger(
    name: str = "weixinify",
    *,
    level: int | str = logging.DEBUG,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Return logger *name*, attaching a JSON handler on first use.

    *level* (an int or a level name in any case) and *stream* (default
    ``sys.stderr``) only take effect the first time a name is seen; later
    calls return the same logger untouched.
    """
    logger = logging.getLogger(name)
    if name in _handled:
        return logger

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger.setLevel(level)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    _handled.add(name)
    return logger
