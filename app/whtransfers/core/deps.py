from fastapi import Request

from app.whtransfers.integrations.odoo import OdooClient
from app.whtransfers.integrations.shopify import ShopifyClient

OWNER_HEADER = "X-User-Id"
ANONYMOUS_OWNER = "anonymous"


def get_erp_client() -> OdooClient | None:
    return OdooClient.from_settings()


def get_ecommerce_client() -> ShopifyClient | None:
    return ShopifyClient.from_settings()


def get_owner(request: Request) -> str:
    return (request.headers.get(OWNER_HEADER) or "").strip() or ANONYMOUS_OWNER


def get_trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", "")
