from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, or_, select, update

from app.whtransfers.db.models import Transfer, TransferLine


@dataclass(frozen=True)
class TransferQueryFilters:
    status: str | None = None
    origin: str | None = None
    destination: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    search: str | None = None
    owner: str | None = None
    limit: int = 50
    offset: int = 0


class TransferRepository:
    def __init__(self, db):
        self.db = db

    def get(self, transfer_id: UUID | str) -> Transfer | None:
        return self.db.execute(select(Transfer).where(Transfer.id == transfer_id)).scalars().first()

    def get_by_client_id(self, client_transfer_id: str) -> Transfer | None:
        return (
            self.db.execute(select(Transfer).where(Transfer.client_transfer_id == client_transfer_id))
            .scalars()
            .first()
        )

    def get_by_ecommerce_ref(self, ref: str) -> Transfer | None:
        return (
            self.db.execute(
                select(Transfer)
                .where(Transfer.ecommerce_transfer_ref == ref)
                .order_by(Transfer.created_at.desc())
            )
            .scalars()
            .first()
        )

    def list_transfers(self, filters: TransferQueryFilters) -> tuple[list[Transfer], int]:
        query = select(Transfer)
        if filters.status:
            query = query.where(Transfer.status == filters.status)
        if filters.origin:
            query = query.where(Transfer.origin_code == filters.origin)
        if filters.destination:
            query = query.where(Transfer.destination_code == filters.destination)
        if filters.owner:
            query = query.where(Transfer.owner == filters.owner)
        if filters.date_from:
            query = query.where(Transfer.created_at >= filters.date_from)
        if filters.date_to:
            query = query.where(Transfer.created_at <= filters.date_to)
        if filters.search:
            pattern = f"%{filters.search}%"
            query = query.where(
                or_(
                    Transfer.erp_movement_name.ilike(pattern),
                    Transfer.client_transfer_id.ilike(pattern),
                    Transfer.origin_code.ilike(pattern),
                    Transfer.destination_code.ilike(pattern),
                )
            )
        total = self.db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
        rows = (
            self.db.execute(
                query.order_by(Transfer.created_at.desc()).limit(filters.limit).offset(filters.offset)
            )
            .scalars()
            .all()
        )
        return list(rows), int(total)

    def count_by_owner_and_status(self, owner: str, status: str) -> int:
        query = select(func.count()).select_from(Transfer).where(Transfer.owner == owner, Transfer.status == status)
        return int(self.db.execute(query).scalar_one())

    def replace_lines(self, transfer: Transfer, lines: list[TransferLine]) -> None:
        transfer.lines.clear()
        self.db.flush()
        for position, line in enumerate(lines):
            line.position = position
            transfer.lines.append(line)
        transfer.updated_at = datetime.utcnow()

    def claim(self, transfer_id: UUID, token: str, statuses: tuple[str, ...]) -> bool:
        """Conditionally take the commit claim; True only for the caller that won it."""
        now = datetime.utcnow()
        result = self.db.execute(
            update(Transfer)
            .where(
                Transfer.id == transfer_id,
                Transfer.status.in_(statuses),
                Transfer.commit_claim.is_(None),
            )
            .values(commit_claim=token, claimed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount == 1

    def release_claim(self, transfer_id: UUID, token: str) -> None:
        self.db.execute(
            update(Transfer)
            .where(Transfer.id == transfer_id, Transfer.commit_claim == token)
            .values(commit_claim=None, claimed_at=None, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

    def cancel(self, transfer_id: UUID, statuses: tuple[str, ...]) -> bool:
        now = datetime.utcnow()
        result = self.db.execute(
            update(Transfer)
            .where(
                Transfer.id == transfer_id,
                Transfer.status.in_(statuses),
                Transfer.commit_claim.is_(None),
                Transfer.erp_movement_id.is_(None),
            )
            .values(status="cancelled", cancelled_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount == 1

    def set_ecommerce_ref(self, transfer_id: UUID, ref: str) -> None:
        self.db.execute(
            update(Transfer)
            .where(Transfer.id == transfer_id)
            .values(ecommerce_transfer_ref=ref, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
