"""Structured Logging — one JSON object per line, carrying bid/order/conversation ids.

Invariants:
    - Every line has timestamp (record time, UTC), level, logger and message
    - Known context keys passed through extra= are copied to the top level when set
    - setup_logging is idempotent: calling it again replaces its own handler only

Design Decisions:
    - stdlib logging plus a JSON formatter; modules log through logging.getLogger(__name__)
    - httpx and the SQLAlchemy engine are held at WARNING so provider calls and SQL
      don't drown the lifecycle events
"""

import json
import logging
from datetime import datetime, timezone

CONTEXT_FIELDS = (
    "bid_id", "order_id", "conversation_id", "view_session",
    "status_from", "status_to", "provider_outcome", "attempt",
    "error_code", "path", "backend",
)
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, getattr(record, key))
            for key in CONTEXT_FIELDS
            if getattr(record, key, None) is not None
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class _PlantBidHandler(logging.StreamHandler):
    """Marker type so setup_logging can find the handler it installed."""


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    root = logging.getLogger()
    for existing in [h for h in root.handlers if isinstance(h, _PlantBidHandler)]:
        root.removeHandler(existing)

    handler = _PlantBidHandler()
    handler.setFormatter(
        JSONFormatter() if fmt == "json"
        else logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"),
    )
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
