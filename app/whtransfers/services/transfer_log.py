import json
import logging
from datetime import datetime
from uuid import UUID

from app.whtransfers.core.context import current_trace_id
from app.whtransfers.core.logging import log_json
from app.whtransfers.db.models import TransferLog
from app.whtransfers.repos.transfer_logs import TransferLogRepository

logger = logging.getLogger(__name__)

SOURCE_API = "api"
SOURCE_FORWARD = "forward"
SOURCE_WEBHOOK = "webhook"
SOURCE_MANUAL = "manual"


class TransferLogService:
    """Best-effort, append-only transfer log.

    Every entry is also emitted as a JSON log line. Failures to persist are
    logged and swallowed so that they never break a saga step.
    """

    def __init__(self, db, *, source: str = SOURCE_API, trace_id: str | None = None):
        self.repo = TransferLogRepository(db)
        self.source = source
        self.trace_id = trace_id or current_trace_id()

    def record(
        self,
        transfer_id: UUID | None,
        event: str,
        detail: dict | None = None,
        *,
        source: str | None = None,
    ) -> None:
        source = source or self.source
        if detail is not None:
            detail = json.loads(json.dumps(detail, default=str))
        log_json(
            logger,
            {
                "event": event,
                "transfer_id": transfer_id,
                "source": source,
                "trace_id": self.trace_id,
                "detail": detail,
            },
        )
        try:
            self.repo.create(
                TransferLog(
                    transfer_id=transfer_id,
                    event=event,
                    source=source,
                    detail=detail,
                    trace_id=self.trace_id,
                    created_at=datetime.utcnow(),
                )
            )
        except Exception:
            self.repo.db.rollback()
            logger.exception(
                "Failed to write transfer log",
                extra={"event": event, "transfer_id": str(transfer_id) if transfer_id else None},
            )

    def bind(self, transfer_id: UUID | None, *, source: str | None = None):
        """Return a ``(event, detail)`` callable scoped to one transfer."""

        def _log(event: str, detail: dict | None = None) -> None:
            self.record(transfer_id, event, detail, source=source)

        return _log
