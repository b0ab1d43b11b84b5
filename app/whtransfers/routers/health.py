from fastapi import APIRouter, Depends, Request
from sqlalchemy import text

from app.whtransfers.core.deps import get_ecommerce_client, get_erp_client
from app.whtransfers.core.error_catalog import ErrorCatalog
from app.whtransfers.core.errors import error_response
from app.whtransfers.db.session import get_db
from app.whtransfers.integrations.exceptions import IntegrationError

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    trace_id = getattr(request.state, "trace_id", "")
    return {"status": "ok", "trace_id": trace_id}


@router.get("/ready")
def ready(request: Request, db=Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except Exception as exc:
        trace_id = getattr(request.state, "trace_id", "")
        return error_response(
            code=ErrorCatalog.DB_UNAVAILABLE.code,
            message=ErrorCatalog.DB_UNAVAILABLE.message,
            details=str(exc),
            trace_id=trace_id,
            status_code=ErrorCatalog.DB_UNAVAILABLE.status_code,
        )
    trace_id = getattr(request.state, "trace_id", "")
    return {"status": "ready", "trace_id": trace_id}


@router.get("/integrations/health")
def integrations_health(request: Request, odoo=Depends(get_erp_client), shopify=Depends(get_ecommerce_client)):
    erp = {"status": "not_configured"}
    if odoo is not None:
        try:
            version = odoo.version()
            erp = {"status": "ok", "server_version": (version or {}).get("server_version")}
        except IntegrationError as exc:
            erp = {"status": "error", "error": str(exc)}
    ecommerce = {"status": "not_configured"}
    if shopify is not None:
        try:
            ecommerce = {"status": "ok", "shop": shopify.shop_name()}
        except IntegrationError as exc:
            ecommerce = {"status": "error", "error": str(exc)}
    return {"erp": erp, "ecommerce": ecommerce, "trace_id": getattr(request.state, "trace_id", "")}
