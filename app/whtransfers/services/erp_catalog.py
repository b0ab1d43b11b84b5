from __future__ import annotations

from dataclasses import dataclass

from app.whtransfers.db.models import Location
from app.whtransfers.integrations.exceptions import ErpError
from app.whtransfers.integrations.odoo import OdooClient

PRODUCT_LOOKUP_CHUNK = 80
QUANT_LOOKUP_CHUNK = 50
PRODUCT_FIELDS = ["id", "display_name", "uom_id", "barcode", "default_code"]


@dataclass(frozen=True)
class ErpProduct:
    id: int
    display_name: str
    uom_id: int | None
    barcode: str | None
    default_code: str | None


def _chunks(values: list, size: int):
    for start in range(0, len(values), size):
        yield values[start : start + size]


def many2one_id(value) -> int | None:
    # Odoo returns many2one fields as [id, display_name], or False when empty.
    if isinstance(value, (list, tuple)) and value:
        return int(value[0])
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def find_products_by_codes(odoo: OdooClient, codes: list[str]) -> dict[str, ErpProduct]:
    """Products keyed by both barcode and internal reference."""
    unique = list(dict.fromkeys(code for code in codes if code))
    found: dict[str, ErpProduct] = {}
    for part in _chunks(unique, PRODUCT_LOOKUP_CHUNK):
        rows = odoo.search_read(
            "product.product",
            ["|", ["barcode", "in", part], ["default_code", "in", part]],
            PRODUCT_FIELDS,
            limit=2000,
        )
        for row in rows:
            product = ErpProduct(
                id=int(row["id"]),
                display_name=row.get("display_name") or "",
                uom_id=many2one_id(row.get("uom_id")),
                barcode=row.get("barcode") or None,
                default_code=row.get("default_code") or None,
            )
            if product.barcode:
                found.setdefault(product.barcode, product)
            if product.default_code:
                found.setdefault(product.default_code, product)
    return found


def find_location_id(odoo: OdooClient, complete_name: str) -> int | None:
    ids = odoo.search("stock.location", [["complete_name", "=", complete_name]], limit=1)
    return int(ids[0]) if ids else None


def resolve_location_id(odoo: OdooClient, code: str, location: Location | None = None) -> int:
    if location is not None and location.erp_location_id:
        return location.erp_location_id
    location_id = find_location_id(odoo, code)
    if location_id is None:
        raise ErpError(code="ERP_LOCATION_NOT_FOUND", message=f"ERP location not found: {code}")
    return location_id


def find_internal_picking_type(odoo: OdooClient) -> int:
    ids = odoo.search("stock.picking.type", [["code", "=", "internal"]], limit=1)
    if not ids:
        raise ErpError(code="ERP_PICKING_TYPE_NOT_FOUND", message="no internal operation type in ERP")
    return int(ids[0])


def free_stock_at_location(odoo: OdooClient, location_id: int, product_ids: list[int]) -> dict[int, float]:
    """``max(0, quantity - reserved_quantity)`` per quant row, summed per product."""
    free: dict[int, float] = {product_id: 0.0 for product_id in product_ids}
    for part in _chunks(list(dict.fromkeys(product_ids)), QUANT_LOOKUP_CHUNK):
        rows = odoo.search_read(
            "stock.quant",
            [["location_id", "=", location_id], ["product_id", "in", part]],
            ["product_id", "quantity", "reserved_quantity"],
            limit=500,
        )
        for row in rows:
            product_id = many2one_id(row.get("product_id"))
            if product_id is None:
                continue
            quantity = float(row.get("quantity") or 0)
            reserved = float(row.get("reserved_quantity") or 0)
            free[product_id] = free.get(product_id, 0.0) + max(0.0, quantity - reserved)
    return free
