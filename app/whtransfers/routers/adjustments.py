from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Request

from app.whtransfers.core.config import settings
from app.whtransfers.core.deps import get_ecommerce_client, get_trace_id
from app.whtransfers.core.error_catalog import AppError, ErrorCatalog
from app.whtransfers.db.session import get_db
from app.whtransfers.integrations.exceptions import IntegrationError
from app.whtransfers.repos.locations import LocationRepository
from app.whtransfers.routers.transfers import scanned_pairs
from app.whtransfers.schemas.adjustments import PlantaAdjustmentRequest, PlantaAdjustmentResponse
from app.whtransfers.services.code_resolver import CodeResolver
from app.whtransfers.services.idempotency import PLANTA_STEP, derive_idempotency_key, extract_client_token
from app.whtransfers.services.planta_adjustment import PlantaAdjuster
from app.whtransfers.services.propagation import inventory_quantities
from app.whtransfers.services.transfer_log import SOURCE_MANUAL, TransferLogService

router = APIRouter()


@router.post("/adjustments/planta", response_model=PlantaAdjustmentResponse)
def adjust_planta(
    request: Request,
    payload: PlantaAdjustmentRequest,
    trace_id: str = Depends(get_trace_id),
    shopify=Depends(get_ecommerce_client),
    db=Depends(get_db),
):
    if shopify is None:
        raise AppError(ErrorCatalog.ECOMMERCE_NOT_CONFIGURED)
    code = payload.location_code or settings.PLANTA_LOCATION_CODE
    location = LocationRepository(db).get_by_code(code)
    if location is None or not location.is_active:
        raise AppError(ErrorCatalog.LOCATION_NOT_FOUND, details={"code": code})

    resolution = CodeResolver(db).resolve(scanned_pairs(payload.lines), allow_negative=True)
    if resolution.is_empty:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": "at least one line with a code and a non-zero qty is required"},
        )
    totals = resolution.totals()
    try:
        quantities, missing = inventory_quantities(shopify, totals)
    except IntegrationError as exc:
        raise AppError(
            ErrorCatalog.ECOMMERCE_REQUEST_FAILED, details={"error": str(exc), "code": exc.code}
        ) from exc
    token = extract_client_token(request.headers, None) or uuid.uuid4().hex
    log = TransferLogService(db, source=SOURCE_MANUAL, trace_id=trace_id or None).bind(None)
    if missing:
        log("ecommerce_variants_not_found", {"skus": missing, "location_code": code})
    result = PlantaAdjuster(shopify, log=log).adjust(
        location_id=location.ecommerce_location_id,
        quantities=quantities,
        negate=payload.negate,
        idempotency_key=derive_idempotency_key(token, PLANTA_STEP),
    )
    return PlantaAdjustmentResponse(
        status=result.status,
        adjusted=result.adjusted,
        reason=result.reason,
        missing_codes=missing,
    )
