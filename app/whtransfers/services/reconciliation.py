from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from app.whtransfers.core.error_catalog import AppError, ErrorCatalog
from app.whtransfers.core.metrics import metrics
from app.whtransfers.integrations.exceptions import IntegrationError
from app.whtransfers.integrations.odoo import OdooClient
from app.whtransfers.integrations.shopify import ShopifyClient, TransferSnapshot, to_gid
from app.whtransfers.repos.transfers import TransferRepository
from app.whtransfers.services import lifecycle
from app.whtransfers.services.transfer_log import SOURCE_WEBHOOK, TransferLogService
from app.whtransfers.services.transfers import TransferService

logger = logging.getLogger(__name__)

TRANSFERRED = "TRANSFERRED"
RECEIVED = "RECEIVED"

STATUS_SKIPPED = "skipped"
STATUS_PROCESSED = "processed"
STATUS_FAILED = "failed"


@dataclass
class ReconciliationResult:
    status: str
    reason: str | None = None
    transfer_ref: str | None = None
    transfer_id: str | None = None
    erp_movement_id: int | None = None
    erp_movement_state: str | None = None
    quantities: dict[str, int] = field(default_factory=dict)

    def as_dict(self) -> dict:
        payload = {"status": self.status}
        for key in ("reason", "transfer_ref", "transfer_id", "erp_movement_id", "erp_movement_state"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.quantities:
            payload["quantities"] = self.quantities
        return payload


def normalize_transfer_gid(payload: dict | None) -> str:
    """Pull the transfer id out of a webhook body; topic and declared type are ignored."""
    payload = payload if isinstance(payload, dict) else {}
    raw = payload.get("admin_graphql_api_id") or payload.get("id")
    if raw is None or str(raw).strip() == "":
        raise AppError(ErrorCatalog.INVALID_WEBHOOK_PAYLOAD, details={"keys": sorted(payload)})
    text = str(raw).strip()
    if text.startswith("gid://"):
        if "/InventoryTransfer/" not in text:
            raise AppError(ErrorCatalog.INVALID_WEBHOOK_PAYLOAD, details={"id": text})
        return text
    if text.isdigit():
        return to_gid("InventoryTransfer", text)
    raise AppError(ErrorCatalog.INVALID_WEBHOOK_PAYLOAD, details={"id": text})


def received_quantities(snapshot: TransferSnapshot) -> dict[str, int]:
    totals: dict[str, int] = {}
    for shipment in snapshot.shipments:
        if (shipment.status or "").upper() != RECEIVED:
            continue
        for line in shipment.line_items:
            if not line.sku or line.accepted_quantity <= 0:
                continue
            totals[line.sku] = totals.get(line.sku, 0) + line.accepted_quantity
    return totals


class ReconciliationListener:
    """Turn a platform-side receipt into the ERP movement it implies.

    The platform is queried for the authoritative status; only fully
    transferred transfers with accepted quantities are committed. Every
    outcome is returned as a result, never raised.
    """

    def __init__(
        self,
        db,
        *,
        odoo: OdooClient | None,
        shopify: ShopifyClient | None,
        trace_id: str | None = None,
    ):
        self.db = db
        self.odoo = odoo
        self.shopify = shopify
        self.repo = TransferRepository(db)
        self.trace_id = trace_id
        self.logs = TransferLogService(db, source=SOURCE_WEBHOOK, trace_id=trace_id)

    def handle(self, transfer_gid: str) -> ReconciliationResult:
        try:
            result = self._handle(transfer_gid)
        except Exception as exc:
            self.db.rollback()
            logger.exception("reconciliation crashed for %s", transfer_gid)
            self.logs.record(None, "webhook_error", {"transfer_ref": transfer_gid, "error": str(exc)})
            result = ReconciliationResult(STATUS_FAILED, reason="internal_error", transfer_ref=transfer_gid)
        metrics.record_reconciliation(result.status)
        return result

    def _handle(self, transfer_gid: str) -> ReconciliationResult:
        if self.shopify is None or self.odoo is None:
            return ReconciliationResult(STATUS_SKIPPED, reason="not_configured", transfer_ref=transfer_gid)
        try:
            snapshot = self.shopify.fetch_transfer(transfer_gid)
        except IntegrationError as exc:
            self.logs.record(None, "webhook_fetch_error", {"transfer_ref": transfer_gid, "error": str(exc)})
            return ReconciliationResult(STATUS_FAILED, reason="fetch_failed", transfer_ref=transfer_gid)

        if (snapshot.status or "").upper() != TRANSFERRED:
            return ReconciliationResult(
                STATUS_SKIPPED, reason=f"status_{(snapshot.status or 'unknown').lower()}", transfer_ref=transfer_gid
            )

        transfer = self.repo.get_by_ecommerce_ref(transfer_gid)
        if transfer is None:
            return ReconciliationResult(STATUS_SKIPPED, reason="transfer_not_found", transfer_ref=transfer_gid)
        result = ReconciliationResult(STATUS_SKIPPED, transfer_ref=transfer_gid, transfer_id=str(transfer.id))
        if transfer.status in lifecycle.TERMINAL_STATUSES:
            result.reason = f"already_{transfer.status}"
            return result

        log = self.logs.bind(transfer.id)
        quantities = received_quantities(snapshot)
        if not quantities:
            log("webhook_no_received_qty", {"transfer_ref": transfer_gid})
            result.reason = "no_received_quantities"
            return result
        result.quantities = quantities

        token = uuid.uuid4().hex
        if not self.repo.claim(transfer.id, token, lifecycle.COMMITTABLE_STATUSES):
            result.reason = "commit_in_progress"
            return result

        service = TransferService(
            self.db, odoo=self.odoo, shopify=self.shopify, source=SOURCE_WEBHOOK, trace_id=self.trace_id
        )
        try:
            outcome = service.commit_claimed(
                transfer,
                token,
                quantities,
                reference=f"ecommerce-webhook/{transfer_gid}",
                source=SOURCE_WEBHOOK,
            )
        except AppError as exc:
            self.repo.release_claim(transfer.id, token)
            log("webhook_commit_error", {"transfer_ref": transfer_gid, "error": exc.error.code, "details": exc.details})
            result.status = STATUS_FAILED
            result.reason = exc.error.code.lower()
            return result

        committed = outcome.transfer
        log(
            "erp_committed_from_webhook",
            {
                "transfer_ref": transfer_gid,
                "erp_movement_id": committed.erp_movement_id,
                "state": committed.erp_movement_state,
                "quantities": quantities,
            },
        )
        result.status = STATUS_PROCESSED
        result.reason = None
        result.erp_movement_id = committed.erp_movement_id
        result.erp_movement_state = committed.erp_movement_state
        return result
