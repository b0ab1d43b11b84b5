import json

import pytest
import responses

from app.whtransfers.integrations.exceptions import EcommerceError, ErpError, TransportError
from app.whtransfers.integrations.http import HttpTransport
from app.whtransfers.integrations.odoo import OdooClient
from app.whtransfers.integrations.shopify import ShipmentLineItem, ShopifyClient

ODOO_URL = "https://odoo.test"
SHOP_URL = "https://shop.test/admin/api/2025-10"
GRAPHQL = f"{SHOP_URL}/graphql.json"


def _transport(base_url, error_cls, retries=1):
    return HttpTransport(base_url=base_url, error_cls=error_cls, retries=retries, retry_backoff_seconds=0)


def _odoo():
    return OdooClient(url=ODOO_URL, db="prod", uid=2, api_key="key", transport=_transport(ODOO_URL, ErpError))


def _shopify():
    transport = _transport(SHOP_URL, EcommerceError)
    transport.headers = {"X-Shopify-Access-Token": "shpat"}
    return ShopifyClient(domain="shop.test", access_token="shpat", transport=transport)


def _body(call):
    return json.loads(call.request.body)


@responses.activate
def test_get_is_retried_on_server_errors():
    responses.add(responses.GET, "https://api.test/ping", status=503)
    responses.add(responses.GET, "https://api.test/ping", json={"ok": True})

    assert _transport("https://api.test", ErpError).request("GET", "/ping") == {"ok": True}
    assert len(responses.calls) == 2


@responses.activate
def test_post_is_not_retried_unless_marked_safe():
    responses.add(responses.POST, "https://api.test/things", status=502, json={"message": "down"})

    with pytest.raises(ErpError) as exc:
        _transport("https://api.test", ErpError).request("POST", "/things", json_body={})

    assert exc.value.code == "HTTP_502"
    assert exc.value.raw_payload == {"message": "down"}
    assert len(responses.calls) == 1


@responses.activate
def test_connection_failure_is_a_transport_error():
    with pytest.raises(TransportError) as exc:
        _transport("https://unreachable.test", ErpError, retries=0).request("GET", "/x")
    assert exc.value.code == "TRANSPORT_ERROR"


@responses.activate
def test_odoo_execute_kw_envelope():
    responses.add(responses.POST, f"{ODOO_URL}/jsonrpc", json={"jsonrpc": "2.0", "id": 1, "result": [3, 4]})

    ids = _odoo().search("stock.location", [["complete_name", "=", "WH/Existencias"]], limit=1)

    assert ids == [3, 4]
    body = _body(responses.calls[0])
    assert body["method"] == "call"
    assert body["params"]["service"] == "object"
    assert body["params"]["method"] == "execute_kw"
    assert body["params"]["args"] == [
        "prod",
        2,
        "key",
        "stock.location",
        "search",
        [[["complete_name", "=", "WH/Existencias"]]],
        {"limit": 1},
    ]


@responses.activate
def test_odoo_error_object_raises():
    responses.add(
        responses.POST,
        f"{ODOO_URL}/jsonrpc",
        json={"jsonrpc": "2.0", "id": 1, "error": {"message": "Odoo Server Error", "data": {"message": "No stock"}}},
    )

    with pytest.raises(ErpError) as exc:
        _odoo().create("stock.picking", {})

    assert exc.value.code == "ODOO_RPC_ERROR"
    assert exc.value.message == "No stock"


@responses.activate
def test_odoo_reads_are_retried():
    responses.add(responses.POST, f"{ODOO_URL}/jsonrpc", status=502)
    responses.add(responses.POST, f"{ODOO_URL}/jsonrpc", json={"result": []})

    assert _odoo().search_read("product.product", [], ["id"]) == []
    assert len(responses.calls) == 2


@responses.activate
def test_odoo_writes_are_not_retried():
    responses.add(responses.POST, f"{ODOO_URL}/jsonrpc", status=502)

    with pytest.raises(ErpError):
        _odoo().call("stock.picking", "button_validate", [1])
    assert len(responses.calls) == 1


@responses.activate
def test_resolve_variants_matches_barcode_and_sku():
    responses.add(
        responses.POST,
        GRAPHQL,
        json={
            "data": {
                "productVariants": {
                    "nodes": [
                        {
                            "id": "gid://shopify/ProductVariant/1",
                            "sku": "X",
                            "barcode": "7500000000001",
                            "inventoryItem": {"id": "gid://shopify/InventoryItem/11"},
                        },
                        {"id": "gid://shopify/ProductVariant/2", "sku": "Y", "barcode": None, "inventoryItem": None},
                    ]
                }
            }
        },
    )

    variants = _shopify().resolve_variants(["7500000000001", "X", "Z"])

    assert set(variants) == {"7500000000001", "X"}
    assert variants["X"].inventory_item_id == "gid://shopify/InventoryItem/11"
    assert responses.calls[0].request.headers["X-Shopify-Access-Token"] == "shpat"
    assert 'sku:"Z"' in _body(responses.calls[0])["variables"]["query"]


@responses.activate
def test_mutations_carry_the_idempotency_key():
    responses.add(
        responses.POST,
        GRAPHQL,
        json={"data": {"inventoryTransferCreate": {"inventoryTransfer": {"id": "gid://shopify/InventoryTransfer/9"}, "userErrors": []}}},
    )

    ref = _shopify().create_transfer("1", "gid://shopify/Location/2", [{"inventoryItemId": "i", "quantity": 1}], "key-1")

    assert ref == "gid://shopify/InventoryTransfer/9"
    body = _body(responses.calls[0])
    assert "@idempotent(key: $idempotencyKey)" in body["query"]
    assert body["variables"]["idempotencyKey"] == "key-1"
    assert body["variables"]["input"]["originLocationId"] == "gid://shopify/Location/1"


@responses.activate
def test_user_errors_raise():
    responses.add(
        responses.POST,
        GRAPHQL,
        json={"data": {"inventoryTransferMarkAsReadyToShip": {"userErrors": [{"field": ["id"], "message": "bad state"}]}}},
    )

    with pytest.raises(EcommerceError) as exc:
        _shopify().mark_transfer_ready_to_ship("gid://shopify/InventoryTransfer/9", "key")

    assert exc.value.code == "SHOPIFY_USER_ERRORS"
    assert exc.value.message == "bad state"


@responses.activate
def test_graphql_errors_raise():
    responses.add(responses.POST, GRAPHQL, json={"errors": [{"message": "Throttled"}]})

    with pytest.raises(EcommerceError) as exc:
        _shopify().shop_name()

    assert exc.value.code == "SHOPIFY_GRAPHQL_ERRORS"


@responses.activate
def test_receive_uses_line_items_or_bulk_accept():
    responses.add(
        responses.POST,
        GRAPHQL,
        json={"data": {"inventoryShipmentReceive": {"inventoryShipment": {"status": "RECEIVED"}, "userErrors": []}}},
    )
    client = _shopify()

    assert client.receive_shipment("s", [ShipmentLineItem(id="l1", quantity=3)], "k1") == "RECEIVED"
    assert client.receive_shipment("s", None, "k2") == "RECEIVED"

    itemized = _body(responses.calls[0])["variables"]
    bulk = _body(responses.calls[1])["variables"]
    assert itemized["lineItems"] == [{"shipmentLineItemId": "l1", "quantity": 3, "reason": "ACCEPTED"}]
    assert "bulkReceiveAction" not in itemized
    assert bulk["bulkReceiveAction"] == "ACCEPTED"
    assert "lineItems" not in bulk


@responses.activate
def test_fetch_transfer_snapshot():
    responses.add(
        responses.POST,
        GRAPHQL,
        json={
            "data": {
                "inventoryTransfer": {
                    "id": "gid://shopify/InventoryTransfer/5",
                    "status": "TRANSFERRED",
                    "shipments": {
                        "nodes": [
                            {
                                "id": "gid://shopify/InventoryShipment/6",
                                "status": "RECEIVED",
                                "lineItems": {
                                    "nodes": [
                                        {
                                            "id": "l",
                                            "quantity": 4,
                                            "acceptedQuantity": 3,
                                            "inventoryItem": {"id": "gid://shopify/InventoryItem/1", "sku": "X"},
                                        }
                                    ]
                                },
                            }
                        ]
                    },
                }
            }
        },
    )

    snapshot = _shopify().fetch_transfer("gid://shopify/InventoryTransfer/5")

    assert snapshot.status == "TRANSFERRED"
    line = snapshot.shipments[0].line_items[0]
    assert (line.sku, line.quantity, line.accepted_quantity) == ("X", 4, 3)


@responses.activate
def test_missing_transfer_raises_not_found():
    responses.add(responses.POST, GRAPHQL, json={"data": {"inventoryTransfer": None}})

    with pytest.raises(EcommerceError) as exc:
        _shopify().fetch_transfer("gid://shopify/InventoryTransfer/404")

    assert exc.value.code == "TRANSFER_NOT_FOUND"


@responses.activate
def test_available_levels_come_from_rest():
    responses.add(
        responses.GET,
        f"{SHOP_URL}/inventory_levels.json",
        json={"inventory_levels": [{"inventory_item_id": 11, "location_id": 1, "available": 7}]},
    )

    levels = _shopify().get_available(["gid://shopify/InventoryItem/11"], "gid://shopify/Location/1")

    assert levels == {"gid://shopify/InventoryItem/11": 7}
    request_url = responses.calls[0].request.url
    assert "inventory_item_ids=11" in request_url
    assert "location_ids=1" in request_url
