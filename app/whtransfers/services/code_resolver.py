from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from app.whtransfers.repos.boxes import BoxRepository


@dataclass(frozen=True)
class ResolvedLine:
    sku: str
    qty: int
    scanned_code: str
    box_code: str | None = None


@dataclass
class Resolution:
    lines: list[ResolvedLine] = field(default_factory=list)

    def totals(self) -> dict[str, int]:
        """Quantity per SKU, in first-seen order."""
        totals: dict[str, int] = {}
        for line in self.lines:
            totals[line.sku] = totals.get(line.sku, 0) + line.qty
        return totals

    @property
    def is_empty(self) -> bool:
        return not self.lines


class CodeResolver:
    """Turn scanned codes into SKU lines, expanding active box barcodes."""

    def __init__(self, db):
        self.boxes = BoxRepository(db)

    def resolve(self, scanned: Iterable[tuple[str, int]], *, allow_negative: bool = False) -> Resolution:
        """Expand box barcodes into SKU lines.

        Lines without a code are dropped, as are lines with ``qty <= 0``. With
        ``allow_negative`` only zero quantities are dropped and the sign carries
        through the box multiplication.
        """
        cleaned = [((code or "").strip(), int(qty or 0)) for code, qty in scanned]
        cleaned = [(code, qty) for code, qty in cleaned if code and (qty != 0 if allow_negative else qty > 0)]
        boxes = self.boxes.get_active_by_barcodes(list({code for code, _ in cleaned}))
        resolution = Resolution()
        for code, qty in cleaned:
            box = boxes.get(code)
            if box is not None:
                resolution.lines.append(
                    ResolvedLine(sku=box.sku, qty=qty * box.qty_per_box, scanned_code=code, box_code=box.barcode)
                )
            else:
                resolution.lines.append(ResolvedLine(sku=code, qty=qty, scanned_code=code))
        return resolution

    def resolve_one(self, code: str, qty: int) -> ResolvedLine | None:
        lines = self.resolve([(code, qty)]).lines
        return lines[0] if lines else None
