from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends

from app.whtransfers.core.deps import get_ecommerce_client, get_erp_client, get_owner, get_trace_id
from app.whtransfers.db.session import get_db
from app.whtransfers.routers.transfers import commit_response, scanned_pairs, transfer_response
from app.whtransfers.schemas.transfers import (
    DraftCreateRequest,
    DraftUpdateRequest,
    TransferCommitResponse,
    TransferListResponse,
    TransferResponse,
)
from app.whtransfers.services.transfers import TransferService


router = APIRouter()


@router.get("/drafts", response_model=TransferListResponse)
def list_drafts(owner: str = Depends(get_owner), db=Depends(get_db)):
    rows = TransferService(db).list_drafts(owner)
    return TransferListResponse(rows=[transfer_response(row) for row in rows], total=len(rows), limit=len(rows), offset=0)


@router.post("/drafts", response_model=TransferResponse, status_code=201)
def create_draft(
    payload: DraftCreateRequest,
    owner: str = Depends(get_owner),
    trace_id: str = Depends(get_trace_id),
    db=Depends(get_db),
):
    transfer = TransferService(db, trace_id=trace_id or None).create_draft(
        owner=owner,
        origin_code=payload.origin_id,
        destination_code=payload.dest_id,
        lines=scanned_pairs(payload.lines),
    )
    return transfer_response(transfer)


@router.patch("/drafts/{draft_id}", response_model=TransferResponse)
def update_draft(
    draft_id: UUID,
    payload: DraftUpdateRequest,
    trace_id: str = Depends(get_trace_id),
    db=Depends(get_db),
):
    transfer = TransferService(db, trace_id=trace_id or None).update_draft(
        draft_id,
        origin_code=payload.origin_id,
        destination_code=payload.dest_id,
        lines=scanned_pairs(payload.lines),
    )
    return transfer_response(transfer)


@router.delete("/drafts/{draft_id}", response_model=TransferResponse)
def delete_draft(draft_id: UUID, trace_id: str = Depends(get_trace_id), db=Depends(get_db)):
    return transfer_response(TransferService(db, trace_id=trace_id or None).delete_draft(draft_id))


@router.post("/drafts/{draft_id}/commit", response_model=TransferCommitResponse)
def commit_draft(
    draft_id: UUID,
    background_tasks: BackgroundTasks,
    trace_id: str = Depends(get_trace_id),
    odoo=Depends(get_erp_client),
    shopify=Depends(get_ecommerce_client),
    db=Depends(get_db),
):
    outcome = TransferService(db, odoo=odoo, shopify=shopify, trace_id=trace_id or None).commit_draft(draft_id)
    return commit_response(outcome, background_tasks, shopify=shopify, trace_id=trace_id, status_code=200)
