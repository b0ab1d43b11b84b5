from sqlalchemy import select

from app.whtransfers.core.config import settings
from app.whtransfers.db.models import Location


DEFAULT_LOCATIONS = [
    # code, name, can_be_origin, can_be_destination
    ("WH/Existencias", "Planta", True, True),
    ("KRONI/Existencias", "Kroni", False, True),
]


def run_seed(db) -> None:
    existing = set(db.execute(select(Location.code)).scalars().all())
    for code, name, can_be_origin, can_be_destination in DEFAULT_LOCATIONS:
        if code in existing:
            continue
        db.add(
            Location(
                code=code,
                name=name,
                can_be_origin=can_be_origin,
                can_be_destination=can_be_destination,
            )
        )
    db.commit()


def seed_if_enabled(db) -> bool:
    if not settings.SEED_DEFAULT_LOCATIONS:
        return False
    run_seed(db)
    return True
