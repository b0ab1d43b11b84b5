from __future__ import annotations

from uuid import UUID

from sqlalchemy import or_, select

from app.whtransfers.db.models import Box


class BoxRepository:
    def __init__(self, db):
        self.db = db

    def list_boxes(self, *, sku: str | None = None, search: str | None = None, include_inactive: bool = False) -> list[Box]:
        query = select(Box)
        if not include_inactive:
            query = query.where(Box.is_active.is_(True))
        if sku:
            query = query.where(Box.sku == sku)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    Box.barcode.ilike(pattern),
                    Box.sku.ilike(pattern),
                    Box.label.ilike(pattern),
                    Box.product_name.ilike(pattern),
                )
            )
        return list(self.db.execute(query.order_by(Box.created_at.desc())).scalars().all())

    def get(self, box_id: UUID) -> Box | None:
        return self.db.execute(select(Box).where(Box.id == box_id)).scalars().first()

    def get_by_barcode(self, barcode: str) -> Box | None:
        return self.db.execute(select(Box).where(Box.barcode == barcode)).scalars().first()

    def get_active_by_barcodes(self, barcodes: list[str]) -> dict[str, Box]:
        if not barcodes:
            return {}
        query = select(Box).where(Box.barcode.in_(barcodes), Box.is_active.is_(True))
        return {box.barcode: box for box in self.db.execute(query).scalars().all()}

    def save(self, box: Box) -> Box:
        self.db.add(box)
        self.db.commit()
        self.db.refresh(box)
        return box
