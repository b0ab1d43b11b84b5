from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    TRANSFER_NOT_FOUND = ErrorDefinition(
        "TRANSFER_NOT_FOUND",
        "Transfer not found",
        status.HTTP_404_NOT_FOUND,
    )
    LOCATION_NOT_FOUND = ErrorDefinition(
        "LOCATION_NOT_FOUND",
        "Location not found",
        status.HTTP_404_NOT_FOUND,
    )
    LOCATION_NOT_ALLOWED = ErrorDefinition(
        "LOCATION_NOT_ALLOWED",
        "Location is not enabled for this role in a transfer",
        status.HTTP_400_BAD_REQUEST,
    )
    INSUFFICIENT_STOCK = ErrorDefinition(
        "INSUFFICIENT_STOCK",
        "Insufficient stock at origin",
        status.HTTP_409_CONFLICT,
    )
    INVALID_TRANSITION = ErrorDefinition(
        "INVALID_TRANSITION",
        "Transfer status does not allow this action",
        status.HTTP_409_CONFLICT,
    )
    TRANSFER_COMMIT_IN_PROGRESS = ErrorDefinition(
        "TRANSFER_COMMIT_IN_PROGRESS",
        "Transfer commit already in progress",
        status.HTTP_409_CONFLICT,
    )
    ERP_COMMIT_FAILED = ErrorDefinition(
        "ERP_COMMIT_FAILED",
        "ERP movement could not be created",
        status.HTTP_502_BAD_GATEWAY,
    )
    ERP_UNAVAILABLE = ErrorDefinition(
        "ERP_UNAVAILABLE",
        "ERP could not be reached",
        status.HTTP_502_BAD_GATEWAY,
    )
    ERP_NOT_CONFIGURED = ErrorDefinition(
        "ERP_NOT_CONFIGURED",
        "ERP integration is not configured",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    ECOMMERCE_NOT_CONFIGURED = ErrorDefinition(
        "ECOMMERCE_NOT_CONFIGURED",
        "E-commerce integration is not configured",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    ECOMMERCE_REQUEST_FAILED = ErrorDefinition(
        "ECOMMERCE_REQUEST_FAILED",
        "E-commerce platform request failed",
        status.HTTP_502_BAD_GATEWAY,
    )
    BOX_NOT_FOUND = ErrorDefinition(
        "BOX_NOT_FOUND",
        "Box not found",
        status.HTTP_404_NOT_FOUND,
    )
    BOX_ALREADY_EXISTS = ErrorDefinition(
        "BOX_ALREADY_EXISTS",
        "An active box with this barcode already exists",
        status.HTTP_409_CONFLICT,
    )
    DRAFTS_DISABLED = ErrorDefinition(
        "DRAFTS_DISABLED",
        "Multiple drafts are not enabled",
        status.HTTP_400_BAD_REQUEST,
    )
    DRAFT_LIMIT_REACHED = ErrorDefinition(
        "DRAFT_LIMIT_REACHED",
        "Maximum number of open drafts reached",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD = ErrorDefinition(
        "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD",
        "Idempotency key reused with different payload",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REPLAY = ErrorDefinition(
        "IDEMPOTENCY_REPLAY",
        "Idempotent replay",
        status.HTTP_200_OK,
    )
    INVALID_WEBHOOK_PAYLOAD = ErrorDefinition(
        "INVALID_WEBHOOK_PAYLOAD",
        "Webhook payload does not carry a transfer id",
        status.HTTP_400_BAD_REQUEST,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    LOCK_TIMEOUT = ErrorDefinition(
        "LOCK_TIMEOUT",
        "Lock wait timeout",
        status.HTTP_409_CONFLICT,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)
