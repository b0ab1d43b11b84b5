from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from app.whtransfers.integrations.exceptions import IntegrationError
from app.whtransfers.integrations.shopify import ShopifyClient, to_gid

logger = logging.getLogger(__name__)

LogFn = Callable[[str, dict], None]

STATUS_ADJUSTED = "adjusted"
STATUS_SKIPPED = "skipped"
STATUS_ERROR = "error"


@dataclass(frozen=True)
class AdjustmentResult:
    status: str
    adjusted: int = 0
    changes: list[dict] = field(default_factory=list)
    reason: str | None = None


def build_deltas(quantities: dict[str, int], *, negate: bool) -> dict[str, int]:
    """Signed delta per inventory item gid; ``negate`` always subtracts."""
    deltas: dict[str, int] = {}
    for item, qty in quantities.items():
        if not qty:
            continue
        deltas[to_gid("InventoryItem", item)] = -abs(qty) if negate else qty
    return deltas


class PlantaAdjuster:
    """One-sided ``available`` adjustment at a single platform location.

    The platform wants the quantity being changed from on each change, so the
    current level is read first and sent back as ``changeFromQuantity``.
    Another writer between the read and the write makes the platform reject
    the adjustment; that case is logged as an error.
    """

    def __init__(self, shopify: ShopifyClient | None, *, log: LogFn):
        self.shopify = shopify
        self.log = log

    def adjust(
        self,
        *,
        location_id: str | None,
        quantities: dict[str, int],
        negate: bool,
        idempotency_key: str,
    ) -> AdjustmentResult:
        if self.shopify is None:
            self.log("planta_adjust_skipped", {"reason": "no_credentials"})
            return AdjustmentResult(status=STATUS_SKIPPED, reason="no_credentials")
        if not location_id:
            self.log("planta_adjust_error", {"error": "location_not_mapped"})
            return AdjustmentResult(status=STATUS_ERROR, reason="location_not_mapped")

        deltas = build_deltas(quantities, negate=negate)
        if not deltas:
            self.log("planta_adjust_skipped", {"reason": "no_changes"})
            return AdjustmentResult(status=STATUS_SKIPPED, reason="no_changes")

        location_gid = to_gid("Location", location_id)
        try:
            baseline = self.shopify.get_available(list(deltas), location_gid)
        except IntegrationError as exc:
            self.log("planta_adjust_error", {"error": f"quantity_query_failed: {exc}", "changes": len(deltas)})
            return AdjustmentResult(status=STATUS_ERROR, reason="quantity_query_failed")

        changes = [
            {
                "inventoryItemId": item,
                "locationId": location_gid,
                "delta": delta,
                "changeFromQuantity": baseline.get(item, 0),
            }
            for item, delta in deltas.items()
        ]
        try:
            self.shopify.adjust_available(changes, idempotency_key)
        except IntegrationError as exc:
            self.log(
                "planta_adjust_error",
                {"error": str(exc), "raw": str(exc.raw_payload)[:800], "changes": len(changes)},
            )
            return AdjustmentResult(status=STATUS_ERROR, changes=changes, reason="adjust_failed")
        self.log("planta_adjusted", {"changes": len(changes), "negate": negate, "location_id": location_gid})
        return AdjustmentResult(status=STATUS_ADJUSTED, adjusted=len(changes), changes=changes)
