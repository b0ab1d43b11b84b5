from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from app.whtransfers.core.config import settings
from app.whtransfers.core.metrics import metrics
from app.whtransfers.integrations.exceptions import IntegrationError
from app.whtransfers.integrations.shopify import ShopifyClient, to_gid
from app.whtransfers.services.idempotency import derive_idempotency_key

logger = logging.getLogger(__name__)

LogFn = Callable[[str, dict], None]

STATUS_SKIPPED = "skipped"
STATUS_CREATE_FAILED = "create_failed"
STATUS_READY_TO_SHIP = "ready_to_ship"
STATUS_RECEIVE_FAILED = "receive_failed"
STATUS_ERROR = "error"
STATUS_DRAFT = "draft"


@dataclass(frozen=True)
class SyncSummary:
    synced: int
    skipped: int
    transfer_ref: str | None
    final_status: str


def _error_detail(step: str, transfer_id, exc: Exception) -> dict:
    detail = {"step": step, "transfer_id": str(transfer_id), "error": str(exc)}
    raw = getattr(exc, "raw_payload", None)
    if raw is not None:
        detail["raw"] = str(raw)[:800]
    return detail


class EcommerceTransferSynchronizer:
    """Mirror a completed ERP movement as an inventory transfer on the platform.

    Five ordered steps: create, ready to ship, create shipment, in transit,
    receive. Create and shipment failures stop the run; the others are only
    logged. Each mutation carries a key derived from the transfer id and step
    name, so replays return the objects created the first time. ``sync`` never
    raises.
    """

    def __init__(
        self,
        shopify: ShopifyClient | None,
        *,
        log: LogFn,
        on_transfer_created: Callable[[str], None] | None = None,
        step_delay_seconds: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.shopify = shopify
        self.log = log
        self.on_transfer_created = on_transfer_created
        self.step_delay_seconds = (
            settings.SHOPIFY_STEP_DELAY_SECONDS if step_delay_seconds is None else step_delay_seconds
        )
        self._sleep = sleep

    def _pause(self) -> None:
        if self.step_delay_seconds > 0:
            self._sleep(self.step_delay_seconds)

    def sync(
        self,
        *,
        transfer_id,
        origin_location_id: str | None,
        destination_location_id: str | None,
        quantities: dict[str, int],
        existing_transfer_ref: str | None = None,
        create_only: bool = False,
        unmatched: int = 0,
    ) -> SyncSummary:
        """Run the steps; ``existing_transfer_ref`` skips creation, ``create_only`` stops after it.

        ``unmatched`` counts SKUs dropped before this point because the platform
        has no variant for them; they are reported as skipped.
        """
        try:
            summary = self._run(
                transfer_id,
                origin_location_id,
                destination_location_id,
                quantities,
                existing_transfer_ref,
                create_only,
                unmatched,
            )
        except Exception as exc:
            logger.exception("ecommerce sync crashed for transfer %s", transfer_id)
            self.log("ecommerce_sync_error", _error_detail("sync", transfer_id, exc))
            summary = SyncSummary(
                synced=0, skipped=len(quantities) + unmatched, transfer_ref=None, final_status=STATUS_ERROR
            )
        metrics.record_ecommerce_sync(summary.final_status)
        return summary

    def _skip(self, reason: str, skipped: int, **detail) -> SyncSummary:
        self.log("ecommerce_sync_skipped", {"reason": reason, **detail})
        return SyncSummary(synced=0, skipped=skipped, transfer_ref=None, final_status=STATUS_SKIPPED)

    def _run(
        self,
        transfer_id,
        origin_location_id,
        destination_location_id,
        quantities,
        existing_transfer_ref=None,
        create_only=False,
        unmatched=0,
    ) -> SyncSummary:
        if self.shopify is None:
            return self._skip("no_credentials", len(quantities) + unmatched)
        if not origin_location_id or not destination_location_id:
            return self._skip(
                "location_not_mapped",
                len(quantities) + unmatched,
                origin_location_id=origin_location_id,
                destination_location_id=destination_location_id,
            )
        line_items = [
            {"inventoryItemId": to_gid("InventoryItem", item), "quantity": qty}
            for item, qty in quantities.items()
            if qty > 0
        ]
        if not line_items:
            return self._skip("no_valid_items", len(quantities) + unmatched)
        synced = len(line_items)
        skipped = len(quantities) - synced + unmatched

        # 1. create (fatal)
        if existing_transfer_ref:
            transfer_ref = existing_transfer_ref
            self.log("ecommerce_transfer_reused", {"transfer_ref": transfer_ref})
        else:
            try:
                transfer_ref = self.shopify.create_transfer(
                    origin_location_id,
                    destination_location_id,
                    line_items,
                    derive_idempotency_key(transfer_id, "create"),
                )
            except IntegrationError as exc:
                self.log("ecommerce_transfer_create_error", _error_detail("create", transfer_id, exc))
                return SyncSummary(
                    synced=0, skipped=len(quantities) + unmatched, transfer_ref=None, final_status=STATUS_CREATE_FAILED
                )
            self.log("ecommerce_transfer_created", {"transfer_ref": transfer_ref, "line_items": synced})
            if self.on_transfer_created is not None:
                self.on_transfer_created(transfer_ref)
        if create_only:
            return self._done(transfer_ref, None, STATUS_DRAFT, synced, skipped)

        # 2. ready to ship
        self._pause()
        try:
            self.shopify.mark_transfer_ready_to_ship(transfer_ref, derive_idempotency_key(transfer_id, "ready_to_ship"))
        except IntegrationError as exc:
            self.log("ecommerce_transfer_ready_error", {**_error_detail("ready_to_ship", transfer_id, exc), "transfer_ref": transfer_ref})

        # 3. shipment (fatal)
        self._pause()
        try:
            shipment_id, shipment_lines = self.shopify.create_shipment(
                transfer_ref, line_items, derive_idempotency_key(transfer_id, "shipment")
            )
        except IntegrationError as exc:
            self.log("ecommerce_shipment_create_error", {**_error_detail("shipment", transfer_id, exc), "transfer_ref": transfer_ref})
            return self._done(transfer_ref, None, STATUS_READY_TO_SHIP, synced, skipped)
        self.log(
            "ecommerce_shipment_created",
            {"shipment_id": shipment_id, "line_item_ids": [line.id for line in shipment_lines]},
        )

        # 4. in transit
        self._pause()
        try:
            status = self.shopify.mark_shipment_in_transit(shipment_id, derive_idempotency_key(transfer_id, "in_transit"))
            self.log("ecommerce_shipment_in_transit", {"shipment_id": shipment_id, "status": status})
        except IntegrationError as exc:
            self.log("ecommerce_shipment_in_transit_error", {**_error_detail("in_transit", transfer_id, exc), "shipment_id": shipment_id})

        # 5. receive, itemized when line ids came back, bulk accept otherwise
        self._pause()
        try:
            final_status = self.shopify.receive_shipment(
                shipment_id, shipment_lines or None, derive_idempotency_key(transfer_id, "receive")
            ) or "unknown"
        except IntegrationError as exc:
            self.log("ecommerce_transfer_receive_error", {**_error_detail("receive", transfer_id, exc), "shipment_id": shipment_id})
            final_status = STATUS_RECEIVE_FAILED
        return self._done(transfer_ref, shipment_id, final_status, synced, skipped)

    def _done(self, transfer_ref, shipment_id, final_status, synced, skipped) -> SyncSummary:
        self.log(
            "ecommerce_sync_done",
            {
                "transfer_ref": transfer_ref,
                "shipment_id": shipment_id,
                "final_status": final_status,
                "synced": synced,
                "skipped": skipped,
            },
        )
        return SyncSummary(synced=synced, skipped=skipped, transfer_ref=transfer_ref, final_status=final_status)
