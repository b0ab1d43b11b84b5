from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from app.whtransfers.core.config import settings
from app.whtransfers.core.error_catalog import AppError, ErrorCatalog
from app.whtransfers.core.metrics import metrics
from app.whtransfers.db.models import Location, Transfer, TransferLine
from app.whtransfers.integrations.exceptions import ErpError, IntegrationError
from app.whtransfers.integrations.odoo import OdooClient
from app.whtransfers.integrations.shopify import ShopifyClient
from app.whtransfers.repos.locations import LocationRepository
from app.whtransfers.repos.transfers import TransferQueryFilters, TransferRepository
from app.whtransfers.services import lifecycle
from app.whtransfers.services.code_resolver import CodeResolver, Resolution
from app.whtransfers.services.erp_catalog import find_location_id
from app.whtransfers.services.erp_committer import ErpMovement, ErpMovementCommitter
from app.whtransfers.services.stock_validator import StockCheck, StockValidator
from app.whtransfers.services.transfer_log import SOURCE_API, TransferLogService

logger = logging.getLogger(__name__)

COMMIT_FAILED_STATE = "commit_failed"
MODE_FULL = "full"
MODE_DRAFT = "draft"


@dataclass
class TransferOutcome:
    transfer: Transfer
    duplicate: bool = False
    propagate: bool = False
    propagation_mode: str = MODE_FULL
    missing_skus: list[str] = field(default_factory=list)


def is_special_destination(code: str | None) -> bool:
    return bool(settings.SPECIAL_DESTINATION_CODE) and code == settings.SPECIAL_DESTINATION_CODE


def line_totals(transfer: Transfer) -> dict[str, int]:
    totals: dict[str, int] = {}
    for line in transfer.lines:
        totals[line.sku] = totals.get(line.sku, 0) + line.qty
    return totals


def _build_lines(resolution: Resolution) -> list[TransferLine]:
    return [
        TransferLine(sku=line.sku, scanned_code=line.scanned_code, qty=line.qty, box_code=line.box_code, position=index)
        for index, line in enumerate(resolution.lines)
    ]


def transfer_reference(transfer: Transfer) -> str:
    return f"wh-transfers/{transfer.client_transfer_id or transfer.id}"


class TransferService:
    """Synchronous half of the transfer saga.

    Validates the request, checks stock, takes the commit claim on the
    transfer row and commits the ERP movement. Propagation to the e-commerce
    platform is left to the caller, guided by ``TransferOutcome.propagate``.
    """

    def __init__(
        self,
        db,
        *,
        odoo: OdooClient | None = None,
        shopify: ShopifyClient | None = None,
        source: str = SOURCE_API,
        trace_id: str | None = None,
    ):
        self.db = db
        self.odoo = odoo
        self.shopify = shopify
        self.repo = TransferRepository(db)
        self.locations = LocationRepository(db)
        self.resolver = CodeResolver(db)
        self.logs = TransferLogService(db, source=source, trace_id=trace_id)

    # -- lookups -----------------------------------------------------------

    def get(self, transfer_id: UUID | str) -> Transfer:
        transfer = self.repo.get(transfer_id)
        if transfer is None:
            raise AppError(ErrorCatalog.TRANSFER_NOT_FOUND, details={"transfer_id": str(transfer_id)})
        return transfer

    def history(self, filters: TransferQueryFilters) -> tuple[list[Transfer], int]:
        return self.repo.list_transfers(filters)

    def _require_erp(self) -> OdooClient:
        if self.odoo is None:
            raise AppError(ErrorCatalog.ERP_NOT_CONFIGURED)
        return self.odoo

    def _location(self, code: str, *, role: str) -> Location:
        location = self.locations.get_by_code(code)
        if location is None or not location.is_active:
            raise AppError(ErrorCatalog.LOCATION_NOT_FOUND, details={"code": code, "role": role})
        allowed = location.can_be_origin if role == "origin" else location.can_be_destination
        if not allowed:
            raise AppError(ErrorCatalog.LOCATION_NOT_ALLOWED, details={"code": code, "role": role})
        return location

    def _locations(self, origin_code: str, destination_code: str) -> tuple[Location, Location]:
        if origin_code == destination_code:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "origin and destination must differ", "code": origin_code},
            )
        return self._location(origin_code, role="origin"), self._location(destination_code, role="destination")

    def _resolve(self, lines: Iterable[tuple[str, int]]) -> Resolution:
        resolution = self.resolver.resolve(lines)
        if resolution.is_empty:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "at least one line with a code and qty > 0 is required"},
            )
        return resolution

    def _check_stock(self, totals: dict[str, int], origin_code: str, origin: Location | None) -> StockCheck:
        validator = StockValidator(self._require_erp())
        try:
            check = validator.check(totals, origin_code, origin)
        except IntegrationError as exc:
            raise AppError(ErrorCatalog.ERP_UNAVAILABLE, details={"error": str(exc), "erp_code": exc.code}) from exc
        if not check.ok:
            raise AppError(
                ErrorCatalog.INSUFFICIENT_STOCK,
                details={"ok": False, "insufficient": [shortage.as_dict() for shortage in check.insufficient]},
            )
        return check

    def _replay(self, existing: Transfer, request_hash: str | None) -> TransferOutcome | None:
        """Answer a repeated client token from the stored record, or None to resume it."""
        if request_hash and existing.request_hash and existing.request_hash != request_hash:
            raise AppError(
                ErrorCatalog.IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD,
                details={"client_transfer_id": existing.client_transfer_id},
            )
        if existing.commit_claim:
            raise AppError(ErrorCatalog.TRANSFER_COMMIT_IN_PROGRESS, details={"transfer_id": str(existing.id)})
        resumable = (
            existing.status == lifecycle.PENDING
            and existing.erp_movement_id is None
            and existing.erp_movement_state == COMMIT_FAILED_STATE
        )
        if resumable:
            return None
        metrics.increment_transfer_replay()
        return TransferOutcome(existing, duplicate=True)

    def _insert(self, transfer: Transfer, request_hash: str | None) -> TransferOutcome | None:
        try:
            self.db.add(transfer)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.repo.get_by_client_id(transfer.client_transfer_id) if transfer.client_transfer_id else None
            if existing is None:
                raise
            replay = self._replay(existing, request_hash)
            if replay is not None:
                return replay
            raise AppError(ErrorCatalog.TRANSFER_COMMIT_IN_PROGRESS, details={"transfer_id": str(existing.id)})
        return None

    # -- synchronous commit ------------------------------------------------

    def submit(
        self,
        *,
        origin_code: str,
        destination_code: str,
        lines: Iterable[tuple[str, int]],
        client_token: str | None = None,
        request_hash: str | None = None,
        owner: str | None = None,
    ) -> TransferOutcome:
        origin, destination = self._locations(origin_code, destination_code)
        if client_token:
            existing = self.repo.get_by_client_id(client_token)
            if existing is not None:
                replay = self._replay(existing, request_hash)
                if replay is not None:
                    return replay
                return self._resume(existing, origin, destination)

        resolution = self._resolve(lines)
        totals = resolution.totals()
        check = self._check_stock(totals, origin.code, origin)

        token = uuid.uuid4().hex
        now = datetime.utcnow()
        transfer = Transfer(
            client_transfer_id=client_token,
            request_hash=request_hash,
            origin_code=origin.code,
            destination_code=destination.code,
            status=lifecycle.PENDING,
            owner=owner,
            commit_claim=token,
            claimed_at=now,
            created_at=now,
            updated_at=now,
            lines=_build_lines(resolution),
        )
        replay = self._insert(transfer, request_hash)
        if replay is not None:
            return replay
        self.logs.record(
            transfer.id,
            "transfer_created",
            {"origin": origin.code, "destination": destination.code, "totals": totals, "owner": owner},
        )
        if check.skipped:
            self.logs.record(transfer.id, "stock_check_skipped", {"error": check.error})
        return self.commit_claimed(transfer, token, totals, origin=origin, destination=destination)

    def _resume(self, transfer: Transfer, origin: Location, destination: Location) -> TransferOutcome:
        totals = line_totals(transfer)
        self._check_stock(totals, origin.code, origin)
        token = uuid.uuid4().hex
        if not self.repo.claim(transfer.id, token, (lifecycle.PENDING,)):
            raise AppError(ErrorCatalog.TRANSFER_COMMIT_IN_PROGRESS, details={"transfer_id": str(transfer.id)})
        self.logs.record(transfer.id, "commit_resumed", {"totals": totals})
        return self.commit_claimed(transfer, token, totals, origin=origin, destination=destination)

    def commit_claimed(
        self,
        transfer: Transfer,
        token: str,
        totals: dict[str, int],
        *,
        origin: Location | None = None,
        destination: Location | None = None,
        reference: str | None = None,
        source: str | None = None,
    ) -> TransferOutcome:
        """Commit (or complete) the ERP movement for a transfer whose claim the caller holds.

        The claim is always released: by ``_finalize`` on success and by
        ``_fail_commit`` on failure.
        """
        odoo = self._require_erp()
        log = self.logs.bind(transfer.id, source=source)
        committer = ErpMovementCommitter(odoo, log=log)
        reference = reference or transfer_reference(transfer)
        try:
            if transfer.erp_movement_id is not None:
                movement = committer.complete(transfer.erp_movement_id)
            else:
                special = is_special_destination(transfer.destination_code)
                movement = committer.commit(
                    origin_code=transfer.origin_code,
                    destination_code=transfer.destination_code,
                    quantities=totals,
                    reference=reference,
                    origin=origin,
                    destination=destination,
                    destination_location_id=self._transit_location_id(odoo) if special else None,
                )
        except IntegrationError as exc:
            self._fail_commit(transfer, token)
            log("erp_commit_error", {"error": str(exc), "erp_code": exc.code, "reference": reference})
            metrics.record_erp_commit("error")
            raise AppError(
                ErrorCatalog.ERP_COMMIT_FAILED,
                details={"transfer_id": str(transfer.id), "error": str(exc), "erp_code": exc.code},
            ) from exc
        except Exception:
            self._fail_commit(transfer, token)
            raise
        return self._finalize(transfer, movement, log, reference)

    def _transit_location_id(self, odoo: OdooClient) -> int:
        if settings.SPECIAL_DESTINATION_TRANSIT_LOCATION_ID:
            return settings.SPECIAL_DESTINATION_TRANSIT_LOCATION_ID
        location_id = find_location_id(odoo, settings.SPECIAL_DESTINATION_TRANSIT_NAME)
        if location_id is None:
            raise ErpError(
                code="ERP_TRANSIT_LOCATION_NOT_FOUND",
                message=f"transit location not found: {settings.SPECIAL_DESTINATION_TRANSIT_NAME}",
            )
        return location_id

    def _fail_commit(self, transfer: Transfer, token: str) -> None:
        self.db.rollback()
        self.db.refresh(transfer)
        if transfer.commit_claim == token:
            transfer.commit_claim = None
            transfer.claimed_at = None
        if transfer.erp_movement_id is None:
            transfer.erp_movement_state = COMMIT_FAILED_STATE
        transfer.updated_at = datetime.utcnow()
        self.db.commit()

    def _finalize(self, transfer: Transfer, movement: ErpMovement, log, reference: str) -> TransferOutcome:
        self.db.refresh(transfer)
        now = datetime.utcnow()
        transfer.erp_movement_id = movement.id
        transfer.erp_movement_name = movement.name
        transfer.erp_movement_state = movement.state
        transfer.commit_claim = None
        transfer.claimed_at = None
        transfer.updated_at = now
        if movement.is_done:
            transfer.status = lifecycle.VALIDATED
            transfer.validated_at = now
        elif transfer.status == lifecycle.DRAFT:
            transfer.status = lifecycle.PENDING
        self.db.commit()
        metrics.record_erp_commit("done" if movement.is_done else "degraded")
        log(
            "erp_committed",
            {
                "erp_movement_id": movement.id,
                "erp_movement_name": movement.name,
                "state": movement.state,
                "reference": reference,
                "missing_skus": movement.missing_skus,
            },
        )
        return TransferOutcome(transfer, propagate=movement.is_done, missing_skus=list(movement.missing_skus))

    # -- pending orders ----------------------------------------------------

    def create_order(
        self,
        *,
        origin_code: str,
        destination_code: str,
        lines: Iterable[tuple[str, int]],
        client_token: str | None = None,
        request_hash: str | None = None,
        owner: str | None = None,
        replicate: bool = False,
    ) -> TransferOutcome:
        origin, destination = self._locations(origin_code, destination_code)
        if client_token:
            existing = self.repo.get_by_client_id(client_token)
            if existing is not None:
                return self._replay(existing, request_hash) or TransferOutcome(existing, duplicate=True)
        resolution = self._resolve(lines)
        check = self._check_stock(resolution.totals(), origin.code, origin)
        now = datetime.utcnow()
        transfer = Transfer(
            client_transfer_id=client_token,
            request_hash=request_hash,
            origin_code=origin.code,
            destination_code=destination.code,
            status=lifecycle.PENDING,
            owner=owner,
            created_at=now,
            updated_at=now,
            lines=_build_lines(resolution),
        )
        replay = self._insert(transfer, request_hash)
        if replay is not None:
            return replay
        self.logs.record(
            transfer.id,
            "order_created",
            {"origin": origin.code, "destination": destination.code, "totals": resolution.totals()},
        )
        if check.skipped:
            self.logs.record(transfer.id, "stock_check_skipped", {"error": check.error})
        replicate_now = replicate and not is_special_destination(destination.code)
        return TransferOutcome(transfer, propagate=replicate_now, propagation_mode=MODE_DRAFT)

    def receive(self, transfer_id: UUID, lines: Iterable[tuple[str, int]] | None = None) -> TransferOutcome:
        transfer = self.get(transfer_id)
        lifecycle.ensure_can_receive(transfer)
        if transfer.commit_claim:
            raise AppError(ErrorCatalog.TRANSFER_COMMIT_IN_PROGRESS, details={"transfer_id": str(transfer.id)})
        self._require_erp()
        origin = self.locations.get_by_code(transfer.origin_code)
        destination = self.locations.get_by_code(transfer.destination_code)

        if lines is not None:
            if transfer.erp_movement_id is not None:
                raise AppError(
                    ErrorCatalog.VALIDATION_ERROR,
                    details={"message": "lines cannot change once an ERP movement exists", "transfer_id": str(transfer.id)},
                )
            resolution = self._resolve(lines)
            self.repo.replace_lines(transfer, _build_lines(resolution))
            self.db.commit()
            self.logs.record(transfer.id, "lines_received", {"totals": resolution.totals()})

        totals = line_totals(transfer)
        if transfer.erp_movement_id is None:
            self._check_stock(totals, transfer.origin_code, origin)
        token = uuid.uuid4().hex
        if not self.repo.claim(transfer.id, token, (lifecycle.PENDING,)):
            raise AppError(ErrorCatalog.TRANSFER_COMMIT_IN_PROGRESS, details={"transfer_id": str(transfer.id)})
        return self.commit_claimed(transfer, token, totals, origin=origin, destination=destination)

    def validate(self, transfer_id: UUID) -> TransferOutcome:
        transfer = self.get(transfer_id)
        lifecycle.ensure_can_validate(transfer)
        self._require_erp()
        token = uuid.uuid4().hex
        if not self.repo.claim(transfer.id, token, (lifecycle.PENDING,)):
            raise AppError(ErrorCatalog.TRANSFER_COMMIT_IN_PROGRESS, details={"transfer_id": str(transfer.id)})
        return self.commit_claimed(transfer, token, {})

    def cancel(self, transfer_id: UUID) -> Transfer:
        transfer = self.get(transfer_id)
        lifecycle.ensure_can_cancel(transfer)
        previous = transfer.status
        if not self.repo.cancel(transfer.id, lifecycle.COMMITTABLE_STATUSES):
            raise AppError(ErrorCatalog.TRANSFER_COMMIT_IN_PROGRESS, details={"transfer_id": str(transfer.id)})
        self.db.refresh(transfer)
        self.logs.record(transfer.id, "cancelled", {"previous_status": previous})
        return transfer

    def duplicate(self, transfer_id: UUID, owner: str | None) -> Transfer:
        source = self.get(transfer_id)
        status = lifecycle.DRAFT if settings.ENABLE_MULTI_DRAFTS else lifecycle.PENDING
        owner = owner or source.owner
        if status == lifecycle.DRAFT:
            self._ensure_draft_capacity(owner)
        now = datetime.utcnow()
        copy = Transfer(
            origin_code=source.origin_code,
            destination_code=source.destination_code,
            status=status,
            owner=owner,
            created_at=now,
            updated_at=now,
            lines=[
                TransferLine(
                    sku=line.sku,
                    scanned_code=line.scanned_code,
                    qty=line.qty,
                    box_code=line.box_code,
                    position=line.position,
                )
                for line in source.lines
            ],
        )
        self.db.add(copy)
        self.db.commit()
        self.logs.record(copy.id, "duplicated_from", {"source_id": str(source.id)})
        return copy

    # -- drafts ------------------------------------------------------------

    def _ensure_drafts_enabled(self) -> None:
        if not settings.ENABLE_MULTI_DRAFTS:
            raise AppError(ErrorCatalog.DRAFTS_DISABLED)

    def _ensure_draft_capacity(self, owner: str | None) -> None:
        open_drafts = self.repo.count_by_owner_and_status(owner or "", lifecycle.DRAFT)
        if open_drafts >= settings.MAX_DRAFTS_PER_OWNER:
            raise AppError(
                ErrorCatalog.DRAFT_LIMIT_REACHED,
                details={"owner": owner, "max_drafts": settings.MAX_DRAFTS_PER_OWNER},
            )

    def _get_draft(self, transfer_id: UUID) -> Transfer:
        self._ensure_drafts_enabled()
        transfer = self.get(transfer_id)
        if transfer.status != lifecycle.DRAFT:
            raise AppError(
                ErrorCatalog.INVALID_TRANSITION,
                details={"transfer_id": str(transfer.id), "status": transfer.status, "action": "edit_draft"},
            )
        return transfer

    def list_drafts(self, owner: str) -> list[Transfer]:
        self._ensure_drafts_enabled()
        rows, _total = self.repo.list_transfers(
            TransferQueryFilters(status=lifecycle.DRAFT, owner=owner, limit=settings.HISTORY_MAX_PAGE_SIZE)
        )
        return rows

    def create_draft(
        self,
        *,
        owner: str,
        origin_code: str,
        destination_code: str,
        lines: Iterable[tuple[str, int]] = (),
    ) -> Transfer:
        self._ensure_drafts_enabled()
        self._ensure_draft_capacity(owner)
        origin, destination = self._locations(origin_code, destination_code)
        resolution = self.resolver.resolve(lines)
        now = datetime.utcnow()
        transfer = Transfer(
            origin_code=origin.code,
            destination_code=destination.code,
            status=lifecycle.DRAFT,
            owner=owner,
            created_at=now,
            updated_at=now,
            lines=_build_lines(resolution),
        )
        self.db.add(transfer)
        self.db.commit()
        self.logs.record(transfer.id, "draft_created", {"owner": owner, "lines": len(resolution.lines)})
        return transfer

    def update_draft(
        self,
        transfer_id: UUID,
        *,
        origin_code: str | None = None,
        destination_code: str | None = None,
        lines: Iterable[tuple[str, int]] | None = None,
    ) -> Transfer:
        transfer = self._get_draft(transfer_id)
        lifecycle.ensure_editable(transfer)
        if origin_code is not None or destination_code is not None:
            origin, destination = self._locations(
                origin_code or transfer.origin_code,
                destination_code or transfer.destination_code,
            )
            transfer.origin_code = origin.code
            transfer.destination_code = destination.code
        if lines is not None:
            self.repo.replace_lines(transfer, _build_lines(self.resolver.resolve(lines)))
        transfer.updated_at = datetime.utcnow()
        self.db.commit()
        self.logs.record(transfer.id, "draft_updated", {"lines": len(transfer.lines)})
        return transfer

    def delete_draft(self, transfer_id: UUID) -> Transfer:
        transfer = self._get_draft(transfer_id)
        return self.cancel(transfer.id)

    def commit_draft(self, transfer_id: UUID) -> TransferOutcome:
        transfer = self._get_draft(transfer_id)
        lifecycle.ensure_draft_committable(transfer)
        origin, destination = self._locations(transfer.origin_code, transfer.destination_code)
        totals = line_totals(transfer)
        check = self._check_stock(totals, origin.code, origin)
        token = uuid.uuid4().hex
        if not self.repo.claim(transfer.id, token, (lifecycle.DRAFT,)):
            raise AppError(ErrorCatalog.TRANSFER_COMMIT_IN_PROGRESS, details={"transfer_id": str(transfer.id)})
        if check.skipped:
            self.logs.record(transfer.id, "stock_check_skipped", {"error": check.error})
        return self.commit_claimed(transfer, token, totals, origin=origin, destination=destination)
