from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class BoxCreateRequest(BaseModel):
    barcode: str
    sku: str
    qty_per_box: int = Field(gt=0)
    label: str | None = None
    product_name: str | None = None
    erp_product_id: int | None = None


class BoxUpdateRequest(BaseModel):
    sku: str | None = None
    qty_per_box: int | None = Field(default=None, gt=0)
    label: str | None = None
    product_name: str | None = None
    erp_product_id: int | None = None
    is_active: bool | None = None


class BoxResponse(BaseModel):
    id: str
    barcode: str
    sku: str
    qty_per_box: int
    label: str | None
    product_name: str | None
    erp_product_id: int | None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class BoxListResponse(BaseModel):
    rows: list[BoxResponse]


class BoxResolveResponse(BaseModel):
    code: str
    is_box: bool
    sku: str
    qty: int
    box: BoxResponse | None = None
