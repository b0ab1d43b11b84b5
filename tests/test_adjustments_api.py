from app.whtransfers.core.deps import get_ecommerce_client
from tests.saga_helpers import PLANTA_SHOP_ID, STORE, STORE_SHOP_ID, add_box

URL = "/adjustments/planta"


def test_planta_adjustment_subtracts_resolved_quantities(client, db_session, fake_shopify):
    item = fake_shopify.add_variant("X")
    fake_shopify.available[(item, PLANTA_SHOP_ID)] = 30
    add_box(db_session, "BOX-X-10", "X", 10)

    response = client.post(URL, json={"lines": [{"code": "BOX-X-10", "qty": 2}, {"code": "X", "qty": 1}]})

    assert response.status_code == 200
    assert response.json() == {"status": "adjusted", "adjusted": 1, "reason": None, "missing_codes": []}
    assert fake_shopify.available[(item, PLANTA_SHOP_ID)] == 9
    change = fake_shopify.adjustments[0]["changes"][0]
    assert change["delta"] == -21
    assert change["changeFromQuantity"] == 30


def test_same_idempotency_key_adjusts_once(client, fake_shopify):
    item = fake_shopify.add_variant("X")
    headers = {"Idempotency-Key": "manual-1"}

    client.post(URL, json={"lines": [{"code": "X", "qty": 2}]}, headers=headers)
    client.post(URL, json={"lines": [{"code": "X", "qty": 2}]}, headers=headers)

    assert fake_shopify.available[(item, PLANTA_SHOP_ID)] == -2
    assert len(fake_shopify.adjustments) == 1


def test_positive_adjustment_at_another_location(client, fake_shopify):
    item = fake_shopify.add_variant("X")

    response = client.post(URL, json={"lines": [{"code": "X", "qty": 4}], "location_code": STORE, "negate": False})

    assert response.json()["status"] == "adjusted"
    assert fake_shopify.available[(item, STORE_SHOP_ID)] == 4


def test_unknown_codes_are_reported(client, fake_shopify):
    fake_shopify.add_variant("X")

    response = client.post(URL, json={"lines": [{"code": "X", "qty": 1}, {"code": "NOPE", "qty": 1}]})

    assert response.json()["missing_codes"] == ["NOPE"]
    assert response.json()["adjusted"] == 1


def test_nothing_known_is_skipped(client, fake_shopify):
    response = client.post(URL, json={"lines": [{"code": "NOPE", "qty": 1}]})

    assert response.json()["status"] == "skipped"
    assert response.json()["reason"] == "no_changes"


def test_requires_platform_credentials(client):
    client.app.dependency_overrides[get_ecommerce_client] = lambda: None

    response = client.post(URL, json={"lines": [{"code": "X", "qty": 1}]})

    assert response.status_code == 503
    assert response.json()["code"] == "ECOMMERCE_NOT_CONFIGURED"


def test_unknown_location(client):
    response = client.post(URL, json={"lines": [{"code": "X", "qty": 1}], "location_code": "NOPE"})
    assert response.status_code == 404
    assert response.json()["code"] == "LOCATION_NOT_FOUND"


def test_variant_lookup_failure(client, fake_shopify):
    fake_shopify.fail_steps.add("variants")

    response = client.post(URL, json={"lines": [{"code": "X", "qty": 1}]})

    assert response.status_code == 502
    assert response.json()["code"] == "ECOMMERCE_REQUEST_FAILED"


def test_manual_negative_correction_is_applied_verbatim(client, fake_shopify):
    item = fake_shopify.add_variant("X")
    fake_shopify.available[(item, PLANTA_SHOP_ID)] = 30

    response = client.post(URL, json={"lines": [{"code": "X", "qty": -5}], "negate": False})

    assert response.status_code == 200
    assert response.json()["status"] == "adjusted"
    assert fake_shopify.available[(item, PLANTA_SHOP_ID)] == 25
    assert fake_shopify.adjustments[0]["changes"][0]["delta"] == -5


def test_zero_quantity_lines_are_rejected(client, fake_shopify):
    fake_shopify.add_variant("X")

    response = client.post(URL, json={"lines": [{"code": "X", "qty": 0}], "negate": False})

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"
