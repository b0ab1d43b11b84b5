from pydantic import BaseModel


class LocationResponse(BaseModel):
    id: str
    code: str
    name: str
    can_be_origin: bool
    can_be_destination: bool
    erp_location_id: int | None
    ecommerce_location_id: str | None


class LocationListResponse(BaseModel):
    rows: list[LocationResponse]
