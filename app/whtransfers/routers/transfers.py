from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import JSONResponse

from app.whtransfers.core.config import settings
from app.whtransfers.core.deps import get_ecommerce_client, get_erp_client, get_owner, get_trace_id
from app.whtransfers.core.error_catalog import ErrorCatalog
from app.whtransfers.db.models import Transfer
from app.whtransfers.db.session import get_db
from app.whtransfers.repos.transfer_logs import TransferLogRepository
from app.whtransfers.repos.transfers import TransferQueryFilters
from app.whtransfers.schemas.transfers import (
    ScannedLine,
    TransferCommitResponse,
    TransferCreateRequest,
    TransferLineResponse,
    TransferListResponse,
    TransferLogListResponse,
    TransferLogResponse,
    TransferOrderRequest,
    TransferReceiveRequest,
    TransferResponse,
)
from app.whtransfers.services.idempotency import REPLAY_HEADER, extract_client_token, fingerprint
from app.whtransfers.services.propagation import run_propagation
from app.whtransfers.services.transfers import TransferOutcome, TransferService


router = APIRouter()


def scanned_pairs(lines: list[ScannedLine] | None) -> list[tuple[str, int]] | None:
    if lines is None:
        return None
    return [(line.code, line.qty) for line in lines]


def _request_hash(payload) -> str:
    return fingerprint(payload.model_dump(mode="json", exclude={"client_transfer_id"}))


def transfer_response(transfer: Transfer) -> TransferResponse:
    return TransferResponse(
        id=str(transfer.id),
        client_transfer_id=transfer.client_transfer_id,
        origin_code=transfer.origin_code,
        destination_code=transfer.destination_code,
        status=transfer.status,
        owner=transfer.owner,
        erp_movement_id=transfer.erp_movement_id,
        erp_movement_name=transfer.erp_movement_name,
        erp_movement_state=transfer.erp_movement_state,
        ecommerce_transfer_ref=transfer.ecommerce_transfer_ref,
        created_at=transfer.created_at,
        updated_at=transfer.updated_at,
        validated_at=transfer.validated_at,
        cancelled_at=transfer.cancelled_at,
        lines=[
            TransferLineResponse(
                position=line.position,
                sku=line.sku,
                qty=line.qty,
                scanned_code=line.scanned_code,
                box_code=line.box_code,
            )
            for line in transfer.lines
        ],
    )


def commit_response(
    outcome: TransferOutcome,
    background_tasks: BackgroundTasks,
    *,
    shopify,
    trace_id: str,
    status_code: int = 201,
):
    """Render a saga outcome; replays answer 200 and never schedule propagation again."""
    if outcome.duplicate:
        body = TransferCommitResponse(duplicate=True, transfer=transfer_response(outcome.transfer))
        return JSONResponse(
            status_code=ErrorCatalog.IDEMPOTENCY_REPLAY.status_code,
            content=body.model_dump(mode="json"),
            headers={REPLAY_HEADER: ErrorCatalog.IDEMPOTENCY_REPLAY.code},
        )
    if outcome.propagate:
        background_tasks.add_task(
            run_propagation,
            outcome.transfer.id,
            shopify=shopify,
            mode=outcome.propagation_mode,
            trace_id=trace_id,
        )
    body = TransferCommitResponse(
        propagation_scheduled=outcome.propagate,
        warnings=[f"sku_not_found_in_erp:{sku}" for sku in outcome.missing_skus],
        transfer=transfer_response(outcome.transfer),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _service(db, odoo, shopify, trace_id: str) -> TransferService:
    return TransferService(db, odoo=odoo, shopify=shopify, trace_id=trace_id or None)


@router.post("/transfers", response_model=TransferCommitResponse, status_code=201)
def create_transfer(
    request: Request,
    payload: TransferCreateRequest,
    background_tasks: BackgroundTasks,
    owner: str = Depends(get_owner),
    trace_id: str = Depends(get_trace_id),
    odoo=Depends(get_erp_client),
    shopify=Depends(get_ecommerce_client),
    db=Depends(get_db),
):
    outcome = _service(db, odoo, shopify, trace_id).submit(
        origin_code=payload.origin_id,
        destination_code=payload.dest_id,
        lines=scanned_pairs(payload.lines),
        client_token=extract_client_token(request.headers, payload.client_transfer_id),
        request_hash=_request_hash(payload),
        owner=owner,
    )
    return commit_response(outcome, background_tasks, shopify=shopify, trace_id=trace_id)


@router.post("/transfers/orders", response_model=TransferCommitResponse, status_code=201)
def create_transfer_order(
    request: Request,
    payload: TransferOrderRequest,
    background_tasks: BackgroundTasks,
    owner: str = Depends(get_owner),
    trace_id: str = Depends(get_trace_id),
    odoo=Depends(get_erp_client),
    shopify=Depends(get_ecommerce_client),
    db=Depends(get_db),
):
    outcome = _service(db, odoo, shopify, trace_id).create_order(
        origin_code=payload.origin_id,
        destination_code=payload.dest_id,
        lines=scanned_pairs(payload.lines),
        client_token=extract_client_token(request.headers, payload.client_transfer_id),
        request_hash=_request_hash(payload),
        owner=owner,
        replicate=payload.replicate,
    )
    return commit_response(outcome, background_tasks, shopify=shopify, trace_id=trace_id)


@router.get("/transfers", response_model=TransferListResponse)
def list_transfers(
    status: str | None = None,
    origin: str | None = None,
    destination: str | None = None,
    date_from: datetime | None = Query(default=None, alias="from"),
    date_to: datetime | None = Query(default=None, alias="to"),
    search: str | None = None,
    owner: str | None = None,
    limit: int = Query(default=50, ge=1),
    offset: int = Query(default=0, ge=0),
    db=Depends(get_db),
):
    limit = min(limit, settings.HISTORY_MAX_PAGE_SIZE)
    filters = TransferQueryFilters(
        status=status,
        origin=origin,
        destination=destination,
        date_from=date_from,
        date_to=date_to,
        search=search,
        owner=owner,
        limit=limit,
        offset=offset,
    )
    rows, total = TransferService(db).history(filters)
    return TransferListResponse(rows=[transfer_response(row) for row in rows], total=total, limit=limit, offset=offset)


@router.get("/transfers/{transfer_id}", response_model=TransferResponse)
def get_transfer(transfer_id: UUID, db=Depends(get_db)):
    return transfer_response(TransferService(db).get(transfer_id))


@router.get("/transfers/{transfer_id}/logs", response_model=TransferLogListResponse)
def get_transfer_logs(transfer_id: UUID, db=Depends(get_db)):
    transfer = TransferService(db).get(transfer_id)
    entries = TransferLogRepository(db).list_for_transfer(transfer.id)
    return TransferLogListResponse(
        rows=[
            TransferLogResponse(
                id=str(entry.id),
                event=entry.event,
                source=entry.source,
                detail=entry.detail,
                trace_id=entry.trace_id,
                created_at=entry.created_at,
            )
            for entry in entries
        ]
    )


@router.post("/transfers/{transfer_id}/receive", response_model=TransferCommitResponse)
def receive_transfer(
    transfer_id: UUID,
    background_tasks: BackgroundTasks,
    payload: TransferReceiveRequest | None = None,
    trace_id: str = Depends(get_trace_id),
    odoo=Depends(get_erp_client),
    shopify=Depends(get_ecommerce_client),
    db=Depends(get_db),
):
    lines = scanned_pairs(payload.lines) if payload is not None else None
    outcome = _service(db, odoo, shopify, trace_id).receive(transfer_id, lines)
    return commit_response(outcome, background_tasks, shopify=shopify, trace_id=trace_id, status_code=200)


@router.post("/transfers/{transfer_id}/validate", response_model=TransferCommitResponse)
def validate_transfer(
    transfer_id: UUID,
    background_tasks: BackgroundTasks,
    trace_id: str = Depends(get_trace_id),
    odoo=Depends(get_erp_client),
    shopify=Depends(get_ecommerce_client),
    db=Depends(get_db),
):
    outcome = _service(db, odoo, shopify, trace_id).validate(transfer_id)
    return commit_response(outcome, background_tasks, shopify=shopify, trace_id=trace_id, status_code=200)


@router.post("/transfers/{transfer_id}/cancel", response_model=TransferResponse)
def cancel_transfer(transfer_id: UUID, trace_id: str = Depends(get_trace_id), db=Depends(get_db)):
    transfer = TransferService(db, trace_id=trace_id or None).cancel(transfer_id)
    return transfer_response(transfer)


@router.post("/transfers/{transfer_id}/duplicate", response_model=TransferResponse, status_code=201)
def duplicate_transfer(
    transfer_id: UUID,
    owner: str = Depends(get_owner),
    trace_id: str = Depends(get_trace_id),
    db=Depends(get_db),
):
    transfer = TransferService(db, trace_id=trace_id or None).duplicate(transfer_id, owner)
    return transfer_response(transfer)
