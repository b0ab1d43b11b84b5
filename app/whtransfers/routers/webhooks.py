from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from app.whtransfers.core.deps import get_ecommerce_client, get_erp_client, get_trace_id
from app.whtransfers.core.error_catalog import AppError, ErrorCatalog
from app.whtransfers.db.session import get_db
from app.whtransfers.services.reconciliation import ReconciliationListener, normalize_transfer_gid

router = APIRouter()


@router.post("/webhooks/ecommerce/inventory-transfers")
async def inventory_transfer_webhook(
    request: Request,
    trace_id: str = Depends(get_trace_id),
    odoo=Depends(get_erp_client),
    shopify=Depends(get_ecommerce_client),
    db=Depends(get_db),
):
    try:
        payload = await request.json()
    except ValueError as exc:
        raise AppError(ErrorCatalog.INVALID_WEBHOOK_PAYLOAD, details={"message": "body is not JSON"}) from exc
    transfer_gid = normalize_transfer_gid(payload)
    listener = ReconciliationListener(db, odoo=odoo, shopify=shopify, trace_id=trace_id or None)
    result = await run_in_threadpool(listener.handle, transfer_gid)
    return result.as_dict()
