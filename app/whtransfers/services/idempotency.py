import hashlib
import json

IDEMPOTENCY_HEADER = "Idempotency-Key"
REPLAY_HEADER = "X-Idempotency-Result"

SYNC_STEPS = ("create", "ready_to_ship", "shipment", "in_transit", "receive")
PLANTA_STEP = "planta_adjust"


def derive_idempotency_key(transfer_id: object, step: str) -> str:
    """UUID-shaped key from the first 128 bits of sha256("<transfer_id>:<step>")."""
    digest = hashlib.sha256(f"{transfer_id}:{step}".encode("utf-8")).hexdigest()
    return f"{digest[0:8]}-{digest[8:12]}-{digest[12:16]}-{digest[16:20]}-{digest[20:32]}"


def fingerprint(payload: object) -> str:
    payload_bytes = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(payload_bytes).hexdigest()


def extract_client_token(headers, body_token: str | None) -> str | None:
    token = (body_token or "").strip() or (headers.get(IDEMPOTENCY_HEADER) or "").strip()
    return token or None
