from fastapi import APIRouter, Depends

from app.whtransfers.db.session import get_db
from app.whtransfers.repos.locations import LocationRepository
from app.whtransfers.schemas.locations import LocationListResponse, LocationResponse

router = APIRouter()


@router.get("/locations", response_model=LocationListResponse)
def list_locations(db=Depends(get_db)):
    rows = LocationRepository(db).list_active()
    return LocationListResponse(
        rows=[
            LocationResponse(
                id=str(location.id),
                code=location.code,
                name=location.name,
                can_be_origin=location.can_be_origin,
                can_be_destination=location.can_be_destination,
                erp_location_id=location.erp_location_id,
                ecommerce_location_id=location.ecommerce_location_id,
            )
            for location in rows
        ]
    )
