from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from app.whtransfers.core.config import settings
from app.whtransfers.db.session import session_scope
from app.whtransfers.integrations.exceptions import IntegrationError
from app.whtransfers.integrations.shopify import ShopifyClient
from app.whtransfers.repos.locations import LocationRepository
from app.whtransfers.repos.transfers import TransferRepository
from app.whtransfers.services.ecommerce_sync import EcommerceTransferSynchronizer, SyncSummary
from app.whtransfers.services.idempotency import PLANTA_STEP, derive_idempotency_key
from app.whtransfers.services.planta_adjustment import AdjustmentResult, PlantaAdjuster
from app.whtransfers.services.transfer_log import SOURCE_FORWARD, TransferLogService
from app.whtransfers.services.transfers import MODE_DRAFT, is_special_destination, line_totals

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PropagationResult:
    kind: str
    sync: SyncSummary | None = None
    adjustment: AdjustmentResult | None = None
    reason: str | None = None


def inventory_quantities(shopify: ShopifyClient, totals: dict[str, int]) -> tuple[dict[str, int], list[str]]:
    """Translate SKU totals to inventory item gids; also returns the SKUs the platform does not know."""
    variants = shopify.resolve_variants(list(totals))
    missing = [sku for sku in totals if sku not in variants]
    quantities: dict[str, int] = {}
    for sku, qty in totals.items():
        variant = variants.get(sku)
        if variant is None:
            continue
        quantities[variant.inventory_item_id] = quantities.get(variant.inventory_item_id, 0) + qty
    return quantities, missing


def propagate_transfer(
    db,
    transfer_id: UUID,
    *,
    shopify: ShopifyClient | None,
    mode: str = "full",
    trace_id: str | None = None,
) -> PropagationResult:
    repo = TransferRepository(db)
    logs = TransferLogService(db, source=SOURCE_FORWARD, trace_id=trace_id)
    log = logs.bind(transfer_id)
    transfer = repo.get(transfer_id)
    if transfer is None:
        log("propagation_skipped", {"reason": "transfer_not_found"})
        return PropagationResult(kind="none", reason="transfer_not_found")

    special = is_special_destination(transfer.destination_code)
    if special or settings.SHOPIFY_REPLICATE_TRANSFERS:
        if shopify is None:
            log("ecommerce_sync_skipped", {"reason": "no_credentials"})
            return PropagationResult(kind="planta" if special else "sync", reason="no_credentials")
    else:
        log("ecommerce_sync_skipped", {"reason": "replication_disabled"})
        return PropagationResult(kind="none", reason="replication_disabled")

    totals = line_totals(transfer)
    try:
        quantities, missing = inventory_quantities(shopify, totals)
    except IntegrationError as exc:
        log("ecommerce_variants_error", {"error": str(exc), "code": exc.code})
        return PropagationResult(kind="planta" if special else "sync", reason="variant_lookup_failed")
    if missing:
        log("ecommerce_variants_not_found", {"skus": missing})

    locations = LocationRepository(db)
    origin = locations.get_by_code(transfer.origin_code)
    origin_location_id = origin.ecommerce_location_id if origin else None

    if special:
        adjuster = PlantaAdjuster(shopify, log=log)
        result = adjuster.adjust(
            location_id=origin_location_id,
            quantities=quantities,
            negate=True,
            idempotency_key=derive_idempotency_key(transfer.id, PLANTA_STEP),
        )
        return PropagationResult(kind="planta", adjustment=result)

    destination = locations.get_by_code(transfer.destination_code)
    synchronizer = EcommerceTransferSynchronizer(
        shopify,
        log=log,
        on_transfer_created=lambda ref: repo.set_ecommerce_ref(transfer.id, ref),
    )
    summary = synchronizer.sync(
        transfer_id=transfer.id,
        origin_location_id=origin_location_id,
        destination_location_id=destination.ecommerce_location_id if destination else None,
        quantities=quantities,
        existing_transfer_ref=transfer.ecommerce_transfer_ref,
        create_only=mode == MODE_DRAFT,
        unmatched=len(missing),
    )
    return PropagationResult(kind="sync", sync=summary)


def run_propagation(
    transfer_id: UUID,
    *,
    shopify: ShopifyClient | None,
    mode: str = "full",
    trace_id: str | None = None,
) -> PropagationResult | None:
    """Background entry point; owns its session and never raises."""
    with session_scope() as db:
        try:
            return propagate_transfer(db, transfer_id, shopify=shopify, mode=mode, trace_id=trace_id)
        except Exception as exc:
            db.rollback()
            logger.exception("propagation failed for transfer %s", transfer_id)
            TransferLogService(db, source=SOURCE_FORWARD, trace_id=trace_id).record(
                transfer_id, "propagation_error", {"error": str(exc), "mode": mode}
            )
            return None
