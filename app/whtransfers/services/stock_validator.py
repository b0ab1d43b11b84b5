from __future__ import annotations

import logging
from dataclasses import dataclass, field

from app.whtransfers.core.config import settings
from app.whtransfers.db.models import Location
from app.whtransfers.integrations.exceptions import IntegrationError
from app.whtransfers.integrations.odoo import OdooClient
from app.whtransfers.services.erp_catalog import find_products_by_codes, free_stock_at_location, resolve_location_id

logger = logging.getLogger(__name__)


def _number(value: float) -> int | float:
    return int(value) if float(value).is_integer() else round(value, 4)


@dataclass(frozen=True)
class Shortage:
    code: str
    requested: int
    available: int | float

    def as_dict(self) -> dict:
        return {"code": self.code, "requested": self.requested, "available": self.available}


@dataclass
class StockCheck:
    ok: bool
    insufficient: list[Shortage] = field(default_factory=list)
    skipped: bool = False
    error: str | None = None


class StockValidator:
    """Compare requested quantities with free ERP stock at the origin.

    Every SKU short of stock is reported, not only the first. A SKU without an
    ERP product counts as zero available. When the ERP cannot be reached the
    outcome follows ``fail_open``: skip the check, or let the error propagate.
    """

    def __init__(self, odoo: OdooClient, *, fail_open: bool | None = None):
        self.odoo = odoo
        self.fail_open = settings.STOCK_CHECK_FAIL_OPEN if fail_open is None else fail_open

    def check(self, totals: dict[str, int], origin_code: str, origin: Location | None = None) -> StockCheck:
        requested = {sku: qty for sku, qty in totals.items() if qty > 0}
        if not requested:
            return StockCheck(ok=True)
        try:
            products = find_products_by_codes(self.odoo, list(requested))
            location_id = resolve_location_id(self.odoo, origin_code, origin)
            product_ids = [products[sku].id for sku in requested if sku in products]
            free = free_stock_at_location(self.odoo, location_id, product_ids) if product_ids else {}
        except IntegrationError as exc:
            if not self.fail_open:
                raise
            logger.warning("stock check skipped for %s: %s", origin_code, exc)
            return StockCheck(ok=True, skipped=True, error=str(exc))

        shortages = []
        for sku, qty in requested.items():
            product = products.get(sku)
            available = free.get(product.id, 0.0) if product else 0.0
            if qty > available:
                shortages.append(Shortage(code=sku, requested=qty, available=_number(available)))
        return StockCheck(ok=not shortages, insufficient=shortages)
