from __future__ import annotations

import json
import logging
import sys
from typing import Any

from flask import g, has_app_context


class RequestIdFilter(logging.Filter):
    """Stamp records with the current request id ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        rid = getattr(g, "request_id", None) if has_app_context() else None
        record.request_id = rid or "-"
        return True


def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"))

    root.handlers.clear()
    root.addHandler(handler)

    # pymongo logs every heartbeat at DEBUG
    logging.getLogger("pymongo").setLevel(max(logging.INFO, root.level))


def log_event(logger: logging.Logger, event_type: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Log one structured event as compact JSON; ``None`` fields are dropped."""
    data: dict[str, Any] = {"event": event_type}
    data.update({k: v for k, v in fields.items() if v is not None})
    logger.log(level, json.dumps(data, separators=(",", ":"), default=str))
