from __future__ import annotations

import itertools
from typing import Any

from app.whtransfers.core.config import settings
from app.whtransfers.integrations.exceptions import ErpError
from app.whtransfers.integrations.http import HttpTransport

_READ_METHODS = {"search", "search_read", "read", "search_count", "fields_get"}


class OdooClient:
    """Thin JSON-RPC client for Odoo's ``object.execute_kw`` service."""

    def __init__(self, *, url: str, db: str, uid: int, api_key: str, transport: HttpTransport | None = None):
        self.url = url
        self.db = db
        self.uid = uid
        self.api_key = api_key
        self.transport = transport or HttpTransport(base_url=url, error_cls=ErpError)
        self._ids = itertools.count(1)

    @classmethod
    def from_settings(cls) -> "OdooClient | None":
        if not (settings.ODOO_URL and settings.ODOO_DB and settings.ODOO_UID and settings.ODOO_API_KEY):
            return None
        return cls(
            url=settings.ODOO_URL,
            db=settings.ODOO_DB,
            uid=settings.ODOO_UID,
            api_key=settings.ODOO_API_KEY,
        )

    def _rpc(self, service: str, method: str, args: list, *, retry: bool = False) -> Any:
        body = {
            "jsonrpc": "2.0",
            "method": "call",
            "params": {"service": service, "method": method, "args": args},
            "id": next(self._ids),
        }
        data = self.transport.request("POST", "/jsonrpc", json_body=body, retry_mutation=retry)
        if not isinstance(data, dict):
            raise ErpError(code="ODOO_BAD_RESPONSE", message="unexpected JSON-RPC response", raw_payload=data)
        error = data.get("error")
        if error:
            detail = error.get("data") or {}
            raise ErpError(
                code="ODOO_RPC_ERROR",
                message=str(detail.get("message") or error.get("message") or "Odoo error"),
                status_code=200,
                raw_payload=error,
            )
        return data.get("result")

    def execute_kw(self, model: str, method: str, args: list, kwargs: dict | None = None) -> Any:
        return self._rpc(
            "object",
            "execute_kw",
            [self.db, self.uid, self.api_key, model, method, args, kwargs or {}],
            retry=method in _READ_METHODS,
        )

    def search(self, model: str, domain: list, *, limit: int | None = None) -> list[int]:
        kwargs = {"limit": limit} if limit else {}
        return self.execute_kw(model, "search", [domain], kwargs) or []

    def search_read(self, model: str, domain: list, fields: list[str], *, limit: int | None = None) -> list[dict]:
        kwargs: dict[str, Any] = {"fields": fields}
        if limit:
            kwargs["limit"] = limit
        return self.execute_kw(model, "search_read", [domain], kwargs) or []

    def read(self, model: str, ids: list[int], fields: list[str]) -> list[dict]:
        return self.execute_kw(model, "read", [ids], {"fields": fields}) or []

    def create(self, model: str, values: dict) -> int:
        return self.execute_kw(model, "create", [values])

    def write(self, model: str, ids: list[int], values: dict) -> bool:
        return self.execute_kw(model, "write", [ids, values])

    def call(self, model: str, method: str, ids: list[int], kwargs: dict | None = None) -> Any:
        return self.execute_kw(model, method, [ids], kwargs)

    def version(self) -> dict:
        return self._rpc("common", "version", [], retry=True) or {}
