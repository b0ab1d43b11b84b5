from tests.saga_helpers import add_box


def _create(client, barcode="BOX-X-10", sku="X", qty_per_box=10, **extra):
    return client.post("/boxes", json={"barcode": barcode, "sku": sku, "qty_per_box": qty_per_box, **extra})


def test_create_and_get_box(client):
    response = _create(client, label="Caja 10")

    assert response.status_code == 201
    box = response.json()
    assert box["barcode"] == "BOX-X-10"
    assert box["is_active"] is True
    assert client.get(f"/boxes/{box['id']}").json()["label"] == "Caja 10"


def test_duplicate_active_barcode_conflicts(client):
    _create(client)

    response = _create(client, sku="Y")

    assert response.status_code == 409
    assert response.json()["code"] == "BOX_ALREADY_EXISTS"


def test_inactive_box_is_reactivated_on_create(client, db_session):
    old = add_box(db_session, "BOX-X-10", "OLD", 3, is_active=False)

    response = _create(client, qty_per_box=12)

    assert response.status_code == 201
    assert response.json()["id"] == str(old.id)
    assert response.json()["sku"] == "X"
    assert response.json()["qty_per_box"] == 12
    assert response.json()["is_active"] is True


def test_box_quantity_must_be_positive(client):
    response = _create(client, qty_per_box=0)
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_resolve_box_and_plain_codes(client, db_session):
    add_box(db_session, "BOX-X-10", "X", 10)

    box = client.get("/boxes/resolve/BOX-X-10", params={"qty": 2}).json()
    plain = client.get("/boxes/resolve/7500000000001").json()

    assert box["is_box"] is True
    assert (box["sku"], box["qty"]) == ("X", 20)
    assert box["box"]["barcode"] == "BOX-X-10"
    assert plain == {"code": "7500000000001", "is_box": False, "sku": "7500000000001", "qty": 1, "box": None}


def test_resolve_rejects_zero_quantity(client):
    response = client.get("/boxes/resolve/X", params={"qty": 0})
    assert response.status_code == 422


def test_update_and_soft_delete(client):
    box = _create(client).json()

    updated = client.patch(f"/boxes/{box['id']}", json={"qty_per_box": 6, "sku": " Y "})
    deleted = client.delete(f"/boxes/{box['id']}")

    assert updated.json()["qty_per_box"] == 6
    assert updated.json()["sku"] == "Y"
    assert deleted.json()["is_active"] is False
    assert client.get("/boxes").json()["rows"] == []
    assert len(client.get("/boxes", params={"include_inactive": True}).json()["rows"]) == 1
    resolved = client.get("/boxes/resolve/BOX-X-10", params={"qty": 3}).json()
    assert (resolved["is_box"], resolved["sku"], resolved["qty"]) == (False, "BOX-X-10", 3)


def test_list_filters_by_sku(client):
    _create(client, barcode="BOX-A", sku="A")
    _create(client, barcode="BOX-B", sku="B")

    rows = client.get("/boxes", params={"sku": "B"}).json()["rows"]

    assert [row["barcode"] for row in rows] == ["BOX-B"]


def test_unknown_box(client):
    response = client.get("/boxes/6c1d8a55-1f0e-4b6b-9b4b-3e8d1b0b7a11")
    assert response.status_code == 404
    assert response.json()["code"] == "BOX_NOT_FOUND"
