from __future__ import annotations

from pydantic import BaseModel, Field

from app.whtransfers.schemas.transfers import ScannedLine


class PlantaAdjustmentRequest(BaseModel):
    lines: list[ScannedLine]
    location_code: str | None = None
    negate: bool = True


class PlantaAdjustmentResponse(BaseModel):
    status: str
    adjusted: int
    reason: str | None = None
    missing_codes: list[str] = Field(default_factory=list)
