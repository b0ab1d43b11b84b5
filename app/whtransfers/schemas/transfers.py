from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


_TRANSFER_CREATE_EXAMPLE = {
    "origin_id": "WH/Existencias",
    "dest_id": "TIENDA-1/Existencias",
    "client_transfer_id": "tablet-7-20250301-0001",
    "lines": [{"code": "BOX-X-10", "qty": 2}, {"code": "7501234567890", "qty": 3}],
}


class ScannedLine(BaseModel):
    code: str
    qty: int = 1


class TransferCreateRequest(BaseModel):
    origin_id: str
    dest_id: str
    lines: list[ScannedLine]
    client_transfer_id: str | None = None

    model_config = {"json_schema_extra": {"example": _TRANSFER_CREATE_EXAMPLE}}


class TransferOrderRequest(TransferCreateRequest):
    replicate: bool = False


class TransferReceiveRequest(BaseModel):
    lines: list[ScannedLine] | None = None


class TransferLineResponse(BaseModel):
    position: int
    sku: str
    qty: int
    scanned_code: str | None
    box_code: str | None


class TransferResponse(BaseModel):
    id: str
    client_transfer_id: str | None
    origin_code: str
    destination_code: str
    status: str
    owner: str | None
    erp_movement_id: int | None
    erp_movement_name: str | None
    erp_movement_state: str | None
    ecommerce_transfer_ref: str | None
    created_at: datetime
    updated_at: datetime | None
    validated_at: datetime | None
    cancelled_at: datetime | None
    lines: list[TransferLineResponse]


class TransferCommitResponse(BaseModel):
    ok: bool = True
    duplicate: bool = False
    propagation_scheduled: bool = False
    warnings: list[str] = Field(default_factory=list)
    transfer: TransferResponse


class TransferListResponse(BaseModel):
    rows: list[TransferResponse]
    total: int
    limit: int
    offset: int


class TransferLogResponse(BaseModel):
    id: str
    event: str
    source: str
    detail: dict | list | None
    trace_id: str | None
    created_at: datetime


class TransferLogListResponse(BaseModel):
    rows: list[TransferLogResponse]


class DraftCreateRequest(BaseModel):
    origin_id: str
    dest_id: str
    lines: list[ScannedLine] = Field(default_factory=list)


class DraftUpdateRequest(BaseModel):
    origin_id: str | None = None
    dest_id: str | None = None
    lines: list[ScannedLine] | None = None
