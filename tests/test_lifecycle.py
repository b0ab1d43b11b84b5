import pytest

from app.whtransfers.core.error_catalog import AppError
from app.whtransfers.db.models import Transfer
from app.whtransfers.services import lifecycle
from tests.saga_helpers import STORE, transfer_payload


def _order(client, lines=(("X", 2),), **kwargs):
    payload = transfer_payload(list(lines), **kwargs)
    response = client.post("/transfers/orders", json=payload)
    assert response.status_code == 201
    return response.json()["transfer"]


@pytest.mark.parametrize(
    "current,target,allowed",
    [
        ("draft", "pending", True),
        ("draft", "cancelled", True),
        ("pending", "validated", True),
        ("pending", "draft", False),
        ("validated", "cancelled", False),
        ("cancelled", "pending", False),
    ],
)
def test_transitions(current, target, allowed):
    assert lifecycle.can_transition(current, target) is allowed


def test_terminal_statuses():
    assert lifecycle.is_terminal("validated")
    assert lifecycle.is_terminal("cancelled")
    assert not lifecycle.is_terminal("pending")


def test_validate_requires_an_erp_movement():
    transfer = Transfer(status="pending", origin_code="A", destination_code="B")
    with pytest.raises(AppError) as exc:
        lifecycle.ensure_can_validate(transfer)
    assert exc.value.error.code == "INVALID_TRANSITION"


def test_claimed_transfer_cannot_be_cancelled():
    transfer = Transfer(status="pending", origin_code="A", destination_code="B", commit_claim="abc")
    with pytest.raises(AppError) as exc:
        lifecycle.ensure_can_cancel(transfer)
    assert exc.value.error.code == "TRANSFER_COMMIT_IN_PROGRESS"


def test_order_stays_pending_without_erp_movement(client, stocked, fake_odoo, fake_shopify):
    transfer = _order(client)

    assert transfer["status"] == "pending"
    assert transfer["erp_movement_id"] is None
    assert fake_odoo.pickings_created() == 0
    assert fake_shopify.calls == []


def test_receive_commits_a_pending_order(client, stocked, fake_odoo, fake_shopify):
    transfer = _order(client)

    response = client.post(f"/transfers/{transfer['id']}/receive")

    assert response.status_code == 200
    body = response.json()
    assert body["transfer"]["status"] == "validated"
    assert body["propagation_scheduled"] is True
    assert fake_odoo.pickings_created() == 1
    assert fake_shopify.created_transfers() == 1


def test_receive_with_counted_lines_replaces_them(client, stocked, fake_odoo):
    transfer = _order(client, lines=[("X", 5)])

    response = client.post(f"/transfers/{transfer['id']}/receive", json={"lines": [{"code": "X", "qty": 4}]})

    assert response.status_code == 200
    assert [(line["sku"], line["qty"]) for line in response.json()["transfer"]["lines"]] == [("X", 4)]
    picking = fake_odoo.pickings[response.json()["transfer"]["erp_movement_id"]]["values"]
    assert picking["move_ids_without_package"][0][2]["product_uom_qty"] == 4


def test_receive_twice_is_an_invalid_transition(client, stocked):
    transfer = _order(client)
    client.post(f"/transfers/{transfer['id']}/receive")

    response = client.post(f"/transfers/{transfer['id']}/receive")

    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_TRANSITION"


def test_cancel_pending_order(client, stocked):
    transfer = _order(client)

    response = client.post(f"/transfers/{transfer['id']}/cancel")

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["cancelled_at"] is not None
    again = client.post(f"/transfers/{transfer['id']}/cancel")
    assert again.status_code == 409
    assert again.json()["code"] == "INVALID_TRANSITION"


def test_validated_transfer_cannot_be_cancelled(client, stocked):
    created = client.post("/transfers", json=transfer_payload([("X", 1)])).json()["transfer"]

    response = client.post(f"/transfers/{created['id']}/cancel")

    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_TRANSITION"


def test_duplicate_copies_lines_into_a_new_pending_transfer(client, stocked, fake_odoo):
    created = client.post("/transfers", json=transfer_payload([("X", 1), ("X", 2)])).json()["transfer"]

    response = client.post(f"/transfers/{created['id']}/duplicate", headers={"X-User-Id": "maria"})

    assert response.status_code == 201
    copy = response.json()
    assert copy["id"] != created["id"]
    assert copy["status"] == "pending"
    assert copy["owner"] == "maria"
    assert copy["destination_code"] == STORE
    assert copy["erp_movement_id"] is None
    assert [(line["sku"], line["qty"]) for line in copy["lines"]] == [("X", 1), ("X", 2)]
    assert fake_odoo.pickings_created() == 1
    logs = client.get(f"/transfers/{copy['id']}/logs").json()["rows"]
    assert logs[0]["event"] == "duplicated_from"
    assert logs[0]["detail"] == {"source_id": created["id"]}
