from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends

from app.whtransfers.core.error_catalog import AppError, ErrorCatalog
from app.whtransfers.db.models import Box
from app.whtransfers.db.session import get_db
from app.whtransfers.repos.boxes import BoxRepository
from app.whtransfers.schemas.boxes import (
    BoxCreateRequest,
    BoxListResponse,
    BoxResolveResponse,
    BoxResponse,
    BoxUpdateRequest,
)
from app.whtransfers.services.code_resolver import CodeResolver


router = APIRouter()


def _box_response(box: Box) -> BoxResponse:
    return BoxResponse(
        id=str(box.id),
        barcode=box.barcode,
        sku=box.sku,
        qty_per_box=box.qty_per_box,
        label=box.label,
        product_name=box.product_name,
        erp_product_id=box.erp_product_id,
        is_active=box.is_active,
        created_at=box.created_at,
        updated_at=box.updated_at,
    )


def _get_box(repo: BoxRepository, box_id: UUID) -> Box:
    box = repo.get(box_id)
    if box is None:
        raise AppError(ErrorCatalog.BOX_NOT_FOUND, details={"box_id": str(box_id)})
    return box


@router.get("/boxes", response_model=BoxListResponse)
def list_boxes(
    sku: str | None = None,
    search: str | None = None,
    include_inactive: bool = False,
    db=Depends(get_db),
):
    rows = BoxRepository(db).list_boxes(sku=sku, search=search, include_inactive=include_inactive)
    return BoxListResponse(rows=[_box_response(box) for box in rows])


@router.get("/boxes/resolve/{barcode}", response_model=BoxResolveResponse)
def resolve_code(barcode: str, qty: int = 1, db=Depends(get_db)):
    line = CodeResolver(db).resolve_one(barcode, qty)
    if line is None:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": "code and qty > 0 are required", "code": barcode, "qty": qty},
        )
    box = BoxRepository(db).get_by_barcode(line.box_code) if line.box_code else None
    return BoxResolveResponse(
        code=line.scanned_code,
        is_box=box is not None,
        sku=line.sku,
        qty=line.qty,
        box=_box_response(box) if box is not None else None,
    )


@router.get("/boxes/{box_id}", response_model=BoxResponse)
def get_box(box_id: UUID, db=Depends(get_db)):
    return _box_response(_get_box(BoxRepository(db), box_id))


@router.post("/boxes", response_model=BoxResponse, status_code=201)
def create_box(payload: BoxCreateRequest, db=Depends(get_db)):
    repo = BoxRepository(db)
    barcode = payload.barcode.strip()
    if not barcode or not payload.sku.strip():
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "barcode and sku are required"})
    now = datetime.utcnow()
    box = repo.get_by_barcode(barcode)
    if box is not None:
        if box.is_active:
            raise AppError(ErrorCatalog.BOX_ALREADY_EXISTS, details={"barcode": barcode, "box_id": str(box.id)})
        box.is_active = True
    else:
        box = Box(barcode=barcode, created_at=now)
    box.sku = payload.sku.strip()
    box.qty_per_box = payload.qty_per_box
    box.label = payload.label
    box.product_name = payload.product_name
    box.erp_product_id = payload.erp_product_id
    box.updated_at = now
    return _box_response(repo.save(box))


@router.patch("/boxes/{box_id}", response_model=BoxResponse)
def update_box(box_id: UUID, payload: BoxUpdateRequest, db=Depends(get_db)):
    repo = BoxRepository(db)
    box = _get_box(repo, box_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(box, field, value.strip() if isinstance(value, str) and field == "sku" else value)
    box.updated_at = datetime.utcnow()
    return _box_response(repo.save(box))


@router.delete("/boxes/{box_id}", response_model=BoxResponse)
def delete_box(box_id: UUID, db=Depends(get_db)):
    repo = BoxRepository(db)
    box = _get_box(repo, box_id)
    box.is_active = False
    box.updated_at = datetime.utcnow()
    return _box_response(repo.save(box))
