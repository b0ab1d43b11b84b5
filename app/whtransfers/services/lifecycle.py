"""Transfer status machine.

``draft -> pending -> validated`` with ``cancelled`` reachable from ``draft`` and
``pending``. ``validated`` and ``cancelled`` are terminal.
"""

from __future__ import annotations

from app.whtransfers.core.error_catalog import AppError, ErrorCatalog
from app.whtransfers.db.models import Transfer

DRAFT = "draft"
PENDING = "pending"
VALIDATED = "validated"
CANCELLED = "cancelled"

TERMINAL_STATUSES = (VALIDATED, CANCELLED)
COMMITTABLE_STATUSES = (DRAFT, PENDING)

_TRANSITIONS = {
    DRAFT: {PENDING, VALIDATED, CANCELLED},
    PENDING: {VALIDATED, CANCELLED},
    VALIDATED: set(),
    CANCELLED: set(),
}


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: str, target: str) -> bool:
    return target in _TRANSITIONS.get(current, set())


def _invalid(transfer: Transfer, action: str) -> AppError:
    return AppError(
        ErrorCatalog.INVALID_TRANSITION,
        details={"transfer_id": str(transfer.id), "status": transfer.status, "action": action},
    )


def ensure_editable(transfer: Transfer) -> None:
    if transfer.status not in COMMITTABLE_STATUSES:
        raise _invalid(transfer, "edit_lines")
    if transfer.commit_claim:
        raise AppError(ErrorCatalog.TRANSFER_COMMIT_IN_PROGRESS, details={"transfer_id": str(transfer.id)})


def ensure_can_cancel(transfer: Transfer) -> None:
    if not can_transition(transfer.status, CANCELLED):
        raise _invalid(transfer, "cancel")
    if transfer.commit_claim:
        raise AppError(ErrorCatalog.TRANSFER_COMMIT_IN_PROGRESS, details={"transfer_id": str(transfer.id)})
    if transfer.erp_movement_id is not None:
        raise AppError(
            ErrorCatalog.INVALID_TRANSITION,
            details={
                "transfer_id": str(transfer.id),
                "status": transfer.status,
                "action": "cancel",
                "message": "an ERP movement already exists for this transfer",
                "erp_movement_id": transfer.erp_movement_id,
            },
        )


def ensure_can_receive(transfer: Transfer) -> None:
    if transfer.status != PENDING:
        raise _invalid(transfer, "receive")


def ensure_can_validate(transfer: Transfer) -> None:
    if transfer.status != PENDING:
        raise _invalid(transfer, "validate")
    if transfer.erp_movement_id is None:
        raise AppError(
            ErrorCatalog.INVALID_TRANSITION,
            details={
                "transfer_id": str(transfer.id),
                "status": transfer.status,
                "action": "validate",
                "message": "transfer has no ERP movement to complete",
            },
        )


def ensure_draft_committable(transfer: Transfer) -> None:
    if transfer.status != DRAFT:
        raise _invalid(transfer, "commit_draft")
    if not any(line.qty > 0 for line in transfer.lines):
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": "draft needs at least one line with qty > 0", "transfer_id": str(transfer.id)},
        )
