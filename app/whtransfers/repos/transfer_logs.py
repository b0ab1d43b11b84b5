from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from app.whtransfers.db.models import TransferLog


class TransferLogRepository:
    def __init__(self, db):
        self.db = db

    def create(self, entry: TransferLog) -> TransferLog:
        self.db.add(entry)
        self.db.commit()
        return entry

    def list_for_transfer(self, transfer_id: UUID) -> list[TransferLog]:
        query = (
            select(TransferLog)
            .where(TransferLog.transfer_id == transfer_id)
            .order_by(TransferLog.created_at.asc())
        )
        return list(self.db.execute(query).scalars().all())

