from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from app.whtransfers.core.config import settings
from app.whtransfers.db.models import Location
from app.whtransfers.integrations.exceptions import ErpError, IntegrationError
from app.whtransfers.integrations.odoo import OdooClient
from app.whtransfers.services.erp_catalog import (
    find_internal_picking_type,
    find_products_by_codes,
    many2one_id,
    resolve_location_id,
)

logger = logging.getLogger(__name__)

LogFn = Callable[[str, dict], None]

STATE_DONE = "done"
STATE_CONFIRMED = "confirmed"
WIZARD_MODELS = ("stock.immediate.transfer", "stock.backorder.confirmation")
VALIDATE_CONTEXT = {"context": {"skip_backorder": True}}
MOVE_FIELDS = [
    "id",
    "product_id",
    "product_uom",
    "product_uom_qty",
    "location_id",
    "location_dest_id",
    "move_line_ids",
]


def _noop_log(event: str, detail: dict) -> None:
    return None


@dataclass(frozen=True)
class ErpMovement:
    id: int
    name: str
    state: str
    missing_skus: list[str] = field(default_factory=list)

    @property
    def is_done(self) -> bool:
        return self.state == STATE_DONE


class ErpMovementCommitter:
    """Create, confirm and force-complete an internal stock.picking.

    Completion problems are not fatal: the picking is left in whatever state
    the ERP reports and the caller receives that state.
    """

    def __init__(self, odoo: OdooClient, *, auto_validate: bool | None = None, log: LogFn | None = None):
        self.odoo = odoo
        self.auto_validate = settings.ODOO_AUTO_VALIDATE if auto_validate is None else auto_validate
        self.log = log or _noop_log

    def commit(
        self,
        *,
        origin_code: str,
        destination_code: str,
        quantities: dict[str, int],
        reference: str,
        origin: Location | None = None,
        destination: Location | None = None,
        origin_location_id: int | None = None,
        destination_location_id: int | None = None,
    ) -> ErpMovement:
        wanted = {sku: qty for sku, qty in quantities.items() if qty > 0}
        products = find_products_by_codes(self.odoo, list(wanted))
        missing = [sku for sku in wanted if sku not in products]
        if missing:
            self.log("erp_skus_not_found", {"skus": missing, "reference": reference})
        resolved = {sku: qty for sku, qty in wanted.items() if sku in products}
        if not resolved:
            raise ErpError(
                code="ERP_NO_LINES",
                message="none of the requested SKUs exist in the ERP",
                raw_payload={"missing": missing},
            )

        picking_type_id = find_internal_picking_type(self.odoo)
        source_id = origin_location_id or resolve_location_id(self.odoo, origin_code, origin)
        dest_id = destination_location_id or resolve_location_id(self.odoo, destination_code, destination)

        moves = []
        for sku, qty in resolved.items():
            product = products[sku]
            move = {
                "product_id": product.id,
                "product_uom_qty": qty,
                "name": product.display_name or sku,
                "location_id": source_id,
                "location_dest_id": dest_id,
            }
            if product.uom_id:
                move["product_uom"] = product.uom_id
            moves.append([0, 0, move])

        picking_id = self.odoo.create(
            "stock.picking",
            {
                "picking_type_id": picking_type_id,
                "location_id": source_id,
                "location_dest_id": dest_id,
                "move_ids_without_package": moves,
                "origin": reference,
            },
        )
        self.log("erp_picking_created", {"picking_id": picking_id, "lines": len(moves), "reference": reference})

        try:
            self.odoo.call("stock.picking", "action_confirm", [picking_id])
        except IntegrationError as exc:
            self.log("erp_confirm_error", {"picking_id": picking_id, "error": str(exc)})

        movement = self.complete(picking_id) if self.auto_validate else self._read_back(picking_id, STATE_CONFIRMED)
        return ErpMovement(id=movement.id, name=movement.name, state=movement.state, missing_skus=missing)

    def complete(self, picking_id: int) -> ErpMovement:
        """Drive an existing picking to ``done``; degrade to its current state on failure."""
        fallback_state = STATE_CONFIRMED
        try:
            if self.validate_picking(picking_id):
                fallback_state = STATE_DONE
        except IntegrationError as exc:
            self.log("erp_validate_error", {"picking_id": picking_id, "error": str(exc)})
        return self._read_back(picking_id, fallback_state)

    def validate_picking(self, picking_id: int) -> bool:
        result = self.odoo.call("stock.picking", "button_validate", [picking_id], VALIDATE_CONTEXT)
        if result is True or self._process_wizard(result, picking_id):
            return True
        self._fill_done_quantities(picking_id)
        result = self.odoo.call("stock.picking", "button_validate", [picking_id], VALIDATE_CONTEXT)
        if result is True or self._process_wizard(result, picking_id):
            return True
        self.log("erp_validate_incomplete", {"picking_id": picking_id, "result": result})
        return False

    def _process_wizard(self, result, picking_id: int) -> bool:
        if not isinstance(result, dict) or result.get("res_model") not in WIZARD_MODELS:
            return False
        model = result["res_model"]
        wizard_id = result.get("res_id")
        if not wizard_id:
            wizard_id = self.odoo.create(model, {"pick_ids": [[6, 0, [picking_id]]]})
        self.odoo.call(model, "process", [wizard_id])
        self.log("erp_wizard_processed", {"picking_id": picking_id, "wizard": model})
        return True

    def _fill_done_quantities(self, picking_id: int) -> None:
        pickings = self.odoo.read("stock.picking", [picking_id], ["move_ids_without_package"])
        move_ids = pickings[0].get("move_ids_without_package") if pickings else None
        if not move_ids:
            return
        for move in self.odoo.read("stock.move", move_ids, MOVE_FIELDS):
            qty = move.get("product_uom_qty") or 0
            line_ids = move.get("move_line_ids") or []
            if line_ids:
                # The whole move quantity lands on the first line.
                self.odoo.write("stock.move.line", line_ids[:1], {"qty_done": qty})
                if len(line_ids) > 1:
                    self.odoo.write("stock.move.line", line_ids[1:], {"qty_done": 0})
                continue
            self.odoo.create(
                "stock.move.line",
                {
                    "picking_id": picking_id,
                    "move_id": move["id"],
                    "product_id": many2one_id(move.get("product_id")),
                    "product_uom_id": many2one_id(move.get("product_uom")),
                    "qty_done": qty,
                    "location_id": many2one_id(move.get("location_id")),
                    "location_dest_id": many2one_id(move.get("location_dest_id")),
                },
            )

    def _read_back(self, picking_id: int, fallback_state: str) -> ErpMovement:
        name = f"picking-{picking_id}"
        state = fallback_state
        try:
            rows = self.odoo.read("stock.picking", [picking_id], ["name", "state"])
        except IntegrationError as exc:
            logger.warning("could not read back picking %s: %s", picking_id, exc)
            rows = []
        if rows:
            name = rows[0].get("name") or name
            state = rows[0].get("state") or state
        return ErpMovement(id=picking_id, name=name, state=state)
