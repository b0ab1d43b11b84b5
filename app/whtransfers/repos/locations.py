from __future__ import annotations

from sqlalchemy import select

from app.whtransfers.db.models import Location


class LocationRepository:
    def __init__(self, db):
        self.db = db

    def list_active(self) -> list[Location]:
        query = select(Location).where(Location.is_active.is_(True)).order_by(Location.name)
        return list(self.db.execute(query).scalars().all())

    def get_by_code(self, code: str) -> Location | None:
        return self.db.execute(select(Location).where(Location.code == code)).scalars().first()
