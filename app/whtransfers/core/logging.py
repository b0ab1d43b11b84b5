from __future__ import annotations

import json
import logging

from app.whtransfers.core.config import settings
from app.whtransfers.core.context import current_trace_id

SERVICE_LOGGER = "app.whtransfers"
# Retry warnings from urllib3 and per-statement engine echo drown out saga events.
QUIET_LOGGERS = ("urllib3.connectionpool", "sqlalchemy.engine")


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    logging.getLogger(SERVICE_LOGGER).setLevel((level or settings.LOG_LEVEL).upper())
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_json(logger: logging.Logger, payload: dict, *, level: int = logging.INFO) -> None:
    """Emit ``payload`` as one JSON line tagged with the service name and current trace id."""
    record = {"service": settings.APP_NAME, **payload}
    if record.get("trace_id") is None:
        record["trace_id"] = current_trace_id()
    logger.log(level, json.dumps(record, ensure_ascii=False, default=str))
