from __future__ import annotations

import json
import logging
import sys
import time
from typing import Any, Dict, Optional, TextIO

_ROOT_LOGGER = "reposhelf"


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: Dict[str, Any] = {
            "ts": time.time(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(
    *,
    verbose: bool = False,
    json_output: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Attach a single stderr handler to the ``reposhelf`` logger tree."""

    logger = logging.getLogger(_ROOT_LOGGER)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    for handler in list(logger.handlers):
        if getattr(handler, "_reposhelf", False):
            logger.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler._reposhelf = True  # type: ignore[attr-defined]
    if json_output:
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
