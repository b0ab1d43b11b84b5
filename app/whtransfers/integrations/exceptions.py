from __future__ import annotations

from dataclasses import dataclass


@dataclass
class IntegrationError(Exception):
    code: str
    message: str
    status_code: int = 0
    raw_payload: object | None = None

    def __str__(self) -> str:
        return f"[{self.status_code}] {self.code}: {self.message}"


class TransportError(IntegrationError):
    """Network/transport failure before an HTTP response was returned."""


class ErpError(IntegrationError):
    """The ERP answered with an HTTP error or a JSON-RPC error object."""


class EcommerceError(IntegrationError):
    """The e-commerce platform answered with HTTP errors, GraphQL errors or userErrors."""


class NotConfiguredError(IntegrationError):
    pass
