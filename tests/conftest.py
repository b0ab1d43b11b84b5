import os
import tempfile
from pathlib import Path

_TEST_DB = Path(tempfile.mkdtemp(prefix="whtransfers-tests-")) / "test.db"
os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{_TEST_DB}"
os.environ["SHOPIFY_STEP_DELAY_SECONDS"] = "0"
os.environ["SEED_DEFAULT_LOCATIONS"] = "false"

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from app.whtransfers.core.deps import get_ecommerce_client, get_erp_client
from app.whtransfers.core.metrics import metrics
from app.whtransfers.db.models import Base
from app.whtransfers.db.session import SessionLocal, engine
from tests.fakes import FakeOdoo, FakeShopify
from tests.saga_helpers import PLANTA, PLANTA_ERP_ID, STORE, STORE_ERP_ID, TRANSIT_ERP_ID, seed_locations


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield


@pytest.fixture()
def db_session():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    seed_locations(db)
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def fake_odoo():
    odoo = FakeOdoo()
    odoo.add_location(PLANTA, PLANTA_ERP_ID)
    odoo.add_location(STORE, STORE_ERP_ID)
    odoo.add_location("KRONI/Tránsito", TRANSIT_ERP_ID)
    return odoo


@pytest.fixture()
def fake_shopify():
    return FakeShopify()


@pytest.fixture()
def stocked(fake_odoo, fake_shopify):
    """SKU ``X`` with 10 free units at Planta, known to both systems."""
    product_id = fake_odoo.add_product("X", barcode="7500000000001")
    fake_odoo.add_quant(PLANTA_ERP_ID, product_id, 10)
    fake_shopify.add_variant("X", barcode="7500000000001")
    return product_id


@pytest.fixture()
def client(db_session, fake_odoo, fake_shopify):
    app = create_app()
    app.dependency_overrides[get_erp_client] = lambda: fake_odoo
    app.dependency_overrides[get_ecommerce_client] = lambda: fake_shopify
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
