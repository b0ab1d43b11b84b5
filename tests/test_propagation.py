from uuid import UUID

import pytest

from app.whtransfers.services.propagation import propagate_transfer
from tests.saga_helpers import PLANTA_ERP_ID, transfer_payload


@pytest.fixture()
def unknown_on_platform(fake_odoo, stocked):
    """SKU ``Y`` stocked in the ERP but without a platform variant."""
    product_id = fake_odoo.add_product("Y")
    fake_odoo.add_quant(PLANTA_ERP_ID, product_id, 10)
    return product_id


def _commit(client, lines) -> UUID:
    response = client.post("/transfers", json=transfer_payload(lines))
    assert response.status_code == 201
    return UUID(response.json()["transfer"]["id"])


def test_skus_unknown_to_the_platform_count_as_skipped(client, db_session, fake_shopify, unknown_on_platform):
    transfer_id = _commit(client, [("X", 2), ("Y", 1)])

    result = propagate_transfer(db_session, transfer_id, shopify=fake_shopify)

    assert result.kind == "sync"
    assert result.sync.synced == 1
    assert result.sync.skipped == 1
    assert result.sync.final_status == "RECEIVED"
    assert fake_shopify.created_transfers() == 1


def test_nothing_known_to_the_platform_skips_the_sync(client, db_session, fake_shopify, unknown_on_platform):
    transfer_id = _commit(client, [("Y", 1)])

    result = propagate_transfer(db_session, transfer_id, shopify=fake_shopify)

    assert result.sync.final_status == "skipped"
    assert result.sync.synced == 0
    assert result.sync.skipped == 1
    assert fake_shopify.created_transfers() == 0
