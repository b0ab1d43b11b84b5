import re
import uuid

from app.whtransfers.services.idempotency import SYNC_STEPS, derive_idempotency_key, extract_client_token, fingerprint

_UUID_SHAPE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")


def test_derived_key_is_deterministic_and_uuid_shaped():
    transfer_id = uuid.uuid4()

    first = derive_idempotency_key(transfer_id, "create")
    second = derive_idempotency_key(str(transfer_id), "create")

    assert first == second
    assert _UUID_SHAPE.match(first)


def test_each_step_gets_its_own_key():
    transfer_id = uuid.uuid4()
    keys = {derive_idempotency_key(transfer_id, step) for step in SYNC_STEPS}
    assert len(keys) == len(SYNC_STEPS)


def test_keys_differ_between_transfers():
    assert derive_idempotency_key(uuid.uuid4(), "create") != derive_idempotency_key(uuid.uuid4(), "create")


def test_body_token_wins_over_header():
    headers = {"Idempotency-Key": "from-header"}
    assert extract_client_token(headers, "from-body") == "from-body"
    assert extract_client_token(headers, None) == "from-header"
    assert extract_client_token({}, "  ") is None


def test_fingerprint_ignores_key_order():
    assert fingerprint({"a": 1, "b": [1, 2]}) == fingerprint({"b": [1, 2], "a": 1})
    assert fingerprint({"a": 1}) != fingerprint({"a": 2})
