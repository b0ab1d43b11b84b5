from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from app.whtransfers.core.config import settings
from app.whtransfers.integrations.exceptions import EcommerceError
from app.whtransfers.integrations.http import HttpTransport

GID_PREFIX = "gid://shopify/"
VARIANT_LOOKUP_CHUNK = 40
_TRAILING_DIGITS = re.compile(r"(\d+)$")


def to_gid(resource: str, value: str | int) -> str:
    text = str(value).strip()
    if text.startswith(GID_PREFIX):
        return text
    return f"{GID_PREFIX}{resource}/{text}"


def gid_to_legacy_id(gid: str) -> str | None:
    match = _TRAILING_DIGITS.search(str(gid or ""))
    return match.group(1) if match else None


def _search_term(code: str) -> str:
    escaped = code.replace("\\", "\\\\").replace('"', '\\"')
    return f'(barcode:"{escaped}" OR sku:"{escaped}")'


def _nodes(connection: dict | None) -> list[dict]:
    if not connection:
        return []
    if "nodes" in connection:
        return [node for node in connection["nodes"] or [] if node]
    return [edge["node"] for edge in connection.get("edges") or [] if edge and edge.get("node")]


@dataclass(frozen=True)
class Variant:
    variant_id: str
    sku: str | None
    barcode: str | None
    inventory_item_id: str


@dataclass(frozen=True)
class ShipmentLineItem:
    id: str
    quantity: int


@dataclass(frozen=True)
class ReceivedLineItem:
    sku: str | None
    inventory_item_id: str | None
    quantity: int
    accepted_quantity: int


@dataclass(frozen=True)
class ShipmentSnapshot:
    id: str
    status: str
    line_items: list[ReceivedLineItem] = field(default_factory=list)


@dataclass(frozen=True)
class TransferSnapshot:
    id: str
    status: str
    shipments: list[ShipmentSnapshot] = field(default_factory=list)


_VARIANTS_QUERY = """
query variantsByCode($query: String!) {
  productVariants(first: 250, query: $query) {
    nodes { id sku barcode inventoryItem { id } }
  }
}
"""

_TRANSFER_CREATE = """
mutation inventoryTransferCreate($input: InventoryTransferCreateInput!, $idempotencyKey: String!) {
  inventoryTransferCreate(input: $input) @idempotent(key: $idempotencyKey) {
    inventoryTransfer { id status }
    userErrors { field message }
  }
}
"""

_TRANSFER_READY = """
mutation inventoryTransferMarkAsReadyToShip($id: ID!, $idempotencyKey: String!) {
  inventoryTransferMarkAsReadyToShip(id: $id) @idempotent(key: $idempotencyKey) {
    inventoryTransfer { id status }
    userErrors { field message }
  }
}
"""

_SHIPMENT_CREATE = """
mutation inventoryShipmentCreate($input: InventoryShipmentCreateInput!, $idempotencyKey: String!) {
  inventoryShipmentCreate(input: $input) @idempotent(key: $idempotencyKey) {
    inventoryShipment {
      id
      status
      lineItems(first: 250) { nodes { id quantity } }
    }
    userErrors { field message }
  }
}
"""

_SHIPMENT_IN_TRANSIT = """
mutation inventoryShipmentMarkInTransit($id: ID!, $idempotencyKey: String!) {
  inventoryShipmentMarkInTransit(id: $id) @idempotent(key: $idempotencyKey) {
    inventoryShipment { id status }
    userErrors { field message }
  }
}
"""

_SHIPMENT_RECEIVE = """
mutation inventoryShipmentReceive(
  $id: ID!
  $lineItems: [InventoryShipmentReceiveItemInput!]
  $bulkReceiveAction: InventoryShipmentReceiveLineItemReason
  $idempotencyKey: String!
) {
  inventoryShipmentReceive(id: $id, lineItems: $lineItems, bulkReceiveAction: $bulkReceiveAction)
    @idempotent(key: $idempotencyKey) {
    inventoryShipment { id status }
    userErrors { field message }
  }
}
"""

_TRANSFER_QUERY = """
query inventoryTransfer($id: ID!) {
  inventoryTransfer(id: $id) {
    id
    status
    shipments(first: 10) {
      nodes {
        id
        status
        lineItems(first: 250) {
          nodes { id quantity acceptedQuantity inventoryItem { id sku } }
        }
      }
    }
  }
}
"""

_ADJUST_QUANTITIES = """
mutation inventoryAdjustQuantities($input: InventoryAdjustQuantitiesInput!, $idempotencyKey: String!) {
  inventoryAdjustQuantities(input: $input) @idempotent(key: $idempotencyKey) {
    inventoryAdjustmentGroup { reason changes { name delta } }
    userErrors { field message }
  }
}
"""

_SHOP_QUERY = "query { shop { name } }"


class ShopifyClient:
    def __init__(
        self,
        *,
        domain: str,
        access_token: str,
        api_version: str = "2025-10",
        transport: HttpTransport | None = None,
    ):
        self.domain = domain
        self.api_version = api_version
        self.transport = transport or HttpTransport(
            base_url=f"https://{domain}/admin/api/{api_version}",
            headers={"X-Shopify-Access-Token": access_token, "Content-Type": "application/json"},
            error_cls=EcommerceError,
        )

    @classmethod
    def from_settings(cls) -> "ShopifyClient | None":
        if not (settings.SHOPIFY_DOMAIN and settings.SHOPIFY_ACCESS_TOKEN):
            return None
        return cls(
            domain=settings.SHOPIFY_DOMAIN,
            access_token=settings.SHOPIFY_ACCESS_TOKEN,
            api_version=settings.SHOPIFY_API_VERSION or "2025-10",
        )

    def graphql(self, query: str, variables: dict | None = None, *, idempotent: bool = False) -> dict:
        payload = self.transport.request(
            "POST",
            "/graphql.json",
            json_body={"query": query, "variables": variables or {}},
            retry_mutation=idempotent,
        )
        if not isinstance(payload, dict):
            raise EcommerceError(code="SHOPIFY_BAD_RESPONSE", message="unexpected GraphQL response", raw_payload=payload)
        if payload.get("errors"):
            raise EcommerceError(
                code="SHOPIFY_GRAPHQL_ERRORS",
                message=str(payload["errors"])[:800],
                status_code=200,
                raw_payload=payload,
            )
        return payload.get("data") or {}

    def _mutate(self, field_name: str, query: str, variables: dict, idempotency_key: str) -> dict:
        data = self.graphql(query, {**variables, "idempotencyKey": idempotency_key}, idempotent=True)
        result = data.get(field_name) or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            raise EcommerceError(
                code="SHOPIFY_USER_ERRORS",
                message="; ".join(str(error.get("message")) for error in user_errors)[:800],
                status_code=200,
                raw_payload=user_errors,
            )
        return result

    def rest_get(self, path: str, params: dict | None = None) -> dict:
        return self.transport.request("GET", path, params=params) or {}

    def resolve_variants(self, codes: list[str]) -> dict[str, Variant]:
        """Map each code to a variant, matching on barcode or SKU."""
        unique = list(dict.fromkeys(code for code in codes if code))
        found: dict[str, Variant] = {}
        for start in range(0, len(unique), VARIANT_LOOKUP_CHUNK):
            part = unique[start : start + VARIANT_LOOKUP_CHUNK]
            query = " OR ".join(_search_term(code) for code in part)
            data = self.graphql(_VARIANTS_QUERY, {"query": query})
            for node in _nodes(data.get("productVariants")):
                inventory_item = (node.get("inventoryItem") or {}).get("id")
                if not inventory_item:
                    continue
                variant = Variant(
                    variant_id=node["id"],
                    sku=node.get("sku"),
                    barcode=node.get("barcode"),
                    inventory_item_id=inventory_item,
                )
                if variant.sku:
                    found.setdefault(variant.sku, variant)
                if variant.barcode:
                    found.setdefault(variant.barcode, variant)
        return {code: found[code] for code in unique if code in found}

    def get_available(self, inventory_item_ids: list[str], location_id: str) -> dict[str, int]:
        """Current ``available`` per inventory item gid at one location, via REST inventory levels."""
        legacy_items = [gid_to_legacy_id(item) for item in inventory_item_ids]
        legacy_location = gid_to_legacy_id(location_id)
        data = self.rest_get(
            "/inventory_levels.json",
            params={
                "inventory_item_ids": ",".join(item for item in legacy_items if item),
                "location_ids": legacy_location,
            },
        )
        available: dict[str, int] = {}
        for level in data.get("inventory_levels") or []:
            gid = to_gid("InventoryItem", level.get("inventory_item_id"))
            available[gid] = int(level.get("available") or 0)
        return available

    def create_transfer(
        self, origin_location_id: str, destination_location_id: str, line_items: list[dict], idempotency_key: str
    ) -> str:
        result = self._mutate(
            "inventoryTransferCreate",
            _TRANSFER_CREATE,
            {
                "input": {
                    "originLocationId": to_gid("Location", origin_location_id),
                    "destinationLocationId": to_gid("Location", destination_location_id),
                    "lineItems": line_items,
                }
            },
            idempotency_key,
        )
        transfer_id = (result.get("inventoryTransfer") or {}).get("id")
        if not transfer_id:
            raise EcommerceError(code="EMPTY_TRANSFER_ID", message="transfer create returned no id", raw_payload=result)
        return transfer_id

    def mark_transfer_ready_to_ship(self, transfer_id: str, idempotency_key: str) -> str | None:
        result = self._mutate("inventoryTransferMarkAsReadyToShip", _TRANSFER_READY, {"id": transfer_id}, idempotency_key)
        return (result.get("inventoryTransfer") or {}).get("status")

    def create_shipment(
        self, transfer_id: str, line_items: list[dict], idempotency_key: str
    ) -> tuple[str, list[ShipmentLineItem]]:
        result = self._mutate(
            "inventoryShipmentCreate",
            _SHIPMENT_CREATE,
            {"input": {"movementId": transfer_id, "lineItems": line_items}},
            idempotency_key,
        )
        shipment = result.get("inventoryShipment") or {}
        if not shipment.get("id"):
            raise EcommerceError(code="EMPTY_SHIPMENT_ID", message="shipment create returned no id", raw_payload=result)
        lines = [
            ShipmentLineItem(id=node["id"], quantity=int(node.get("quantity") or 0))
            for node in _nodes(shipment.get("lineItems"))
            if node.get("id")
        ]
        return shipment["id"], lines

    def mark_shipment_in_transit(self, shipment_id: str, idempotency_key: str) -> str | None:
        result = self._mutate(
            "inventoryShipmentMarkInTransit", _SHIPMENT_IN_TRANSIT, {"id": shipment_id}, idempotency_key
        )
        return (result.get("inventoryShipment") or {}).get("status")

    def receive_shipment(
        self, shipment_id: str, line_items: list[ShipmentLineItem] | None, idempotency_key: str
    ) -> str | None:
        variables: dict[str, Any] = {"id": shipment_id}
        if line_items:
            variables["lineItems"] = [
                {"shipmentLineItemId": item.id, "quantity": item.quantity, "reason": "ACCEPTED"}
                for item in line_items
            ]
        else:
            variables["bulkReceiveAction"] = "ACCEPTED"
        result = self._mutate("inventoryShipmentReceive", _SHIPMENT_RECEIVE, variables, idempotency_key)
        return (result.get("inventoryShipment") or {}).get("status")

    def fetch_transfer(self, transfer_id: str) -> TransferSnapshot:
        data = self.graphql(_TRANSFER_QUERY, {"id": transfer_id})
        transfer = data.get("inventoryTransfer")
        if not transfer:
            raise EcommerceError(code="TRANSFER_NOT_FOUND", message=f"transfer {transfer_id} not found", status_code=404)
        shipments = []
        for shipment in _nodes(transfer.get("shipments")):
            lines = [
                ReceivedLineItem(
                    sku=(node.get("inventoryItem") or {}).get("sku"),
                    inventory_item_id=(node.get("inventoryItem") or {}).get("id"),
                    quantity=int(node.get("quantity") or 0),
                    accepted_quantity=int(node.get("acceptedQuantity") or 0),
                )
                for node in _nodes(shipment.get("lineItems"))
            ]
            shipments.append(ShipmentSnapshot(id=shipment.get("id"), status=shipment.get("status"), line_items=lines))
        return TransferSnapshot(id=transfer.get("id"), status=transfer.get("status"), shipments=shipments)

    def adjust_available(self, changes: list[dict], idempotency_key: str) -> dict:
        return self._mutate(
            "inventoryAdjustQuantities",
            _ADJUST_QUANTITIES,
            {"input": {"reason": "correction", "name": "available", "changes": changes}},
            idempotency_key,
        )

    def shop_name(self) -> str | None:
        data = self.graphql(_SHOP_QUERY)
        return (data.get("shop") or {}).get("name")
