"""Engine error taxonomy and the FastAPI handlers that render it.

Every guard violation raised by the engine is a FretMarineException
subclass carrying a stable error code and structured details, so callers
can render an actionable message ("exceeds weight capacity by 100.0 kg").
"""

import logging
import traceback
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class FretMarineException(Exception):
    """Root of every error the engine raises on purpose."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class BusinessLogicError(FretMarineException):
    """A business rule refused the operation."""

    def __init__(
        self,
        message: str,
        error_code: str = "BUSINESS_LOGIC_ERROR",
        details: dict | None = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code=error_code,
            details=details,
        )


class ResourceNotFoundError(FretMarineException):
    """Unknown or soft-deleted entity."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            message=f"{resource} not found: {identifier}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
            details={"resource": resource, "id": identifier},
        )


class PermissionDeniedError(FretMarineException):
    """The caller's role lacks a required permission."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="PERMISSION_DENIED",
        )


# ── Admission ────────────────────────────────────────────────


class AlreadyAssignedError(FretMarineException):
    """The cargo item already sits in another container."""

    def __init__(self, item_ref: str, container_id: str):
        super().__init__(
            message=(
                f"Cargo item {item_ref} is already assigned to container "
                f"{container_id}. Unassign it first."
            ),
            status_code=status.HTTP_409_CONFLICT,
            error_code="ALREADY_ASSIGNED",
            details={"cargo_item": item_ref, "container_id": container_id},
        )


class ContainerClosedError(FretMarineException):
    """The container no longer accepts (or releases) cargo items."""

    def __init__(self, container_ref: str, container_status: str, action: str = "assign"):
        super().__init__(
            message=f"Cannot {action} cargo: container {container_ref} is '{container_status}'",
            status_code=status.HTTP_409_CONFLICT,
            error_code="CONTAINER_CLOSED",
            details={
                "container": container_ref,
                "status": container_status,
                "action": action,
            },
        )


class CapacityExceededError(FretMarineException):
    """Admitting the cargo item would overflow the declared capacity."""

    def __init__(
        self,
        container_ref: str,
        overflow_weight_kg: float = 0.0,
        overflow_volume_m3: float = 0.0,
    ):
        self.overflow_weight_kg = overflow_weight_kg
        self.overflow_volume_m3 = overflow_volume_m3
        parts = []
        if overflow_weight_kg > 0:
            parts.append(f"weight capacity by {overflow_weight_kg:.1f} kg")
        if overflow_volume_m3 > 0:
            parts.append(f"volume capacity by {overflow_volume_m3:.2f} m3")
        super().__init__(
            message=f"Container {container_ref}: exceeds {' and '.join(parts)}",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="CAPACITY_EXCEEDED",
            details={
                "container": container_ref,
                "overflow_weight_kg": overflow_weight_kg,
                "overflow_volume_m3": overflow_volume_m3,
            },
        )


# ── Lifecycle ────────────────────────────────────────────────


class EmptyContainerError(FretMarineException):
    """Closing a container that holds no cargo item."""

    def __init__(self, container_ref: str):
        super().__init__(
            message=f"Cannot close container {container_ref}: it holds no cargo item",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="EMPTY_CONTAINER",
            details={"container": container_ref},
        )


class InvalidTransitionError(FretMarineException):
    """Status change not present in the lifecycle edge table."""

    def __init__(self, entity_type: str, current_status: str, attempted_status: str):
        self.current_status = current_status
        self.attempted_status = attempted_status
        super().__init__(
            message=(
                f"Invalid {entity_type} transition: "
                f"'{current_status}' → '{attempted_status}'"
            ),
            status_code=status.HTTP_409_CONFLICT,
            error_code="INVALID_TRANSITION",
            details={
                "entity_type": entity_type,
                "current_status": current_status,
                "attempted_status": attempted_status,
            },
        )


# ── Finance ──────────────────────────────────────────────────


class PaymentExceedsDueError(FretMarineException):
    """Amount paid greater than the amount due."""

    def __init__(self, amount_due: float, amount_paid: float):
        super().__init__(
            message=(
                f"Amount paid {amount_paid:.2f} exceeds amount due "
                f"{amount_due:.2f} by {amount_paid - amount_due:.2f}"
            ),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="PAYMENT_EXCEEDS_DUE",
            details={"amount_due": amount_due, "amount_paid": amount_paid},
        )


# ── Concurrency ──────────────────────────────────────────────


class ConcurrentModificationError(FretMarineException):
    """Another operation changed the same rows first."""

    def __init__(self, message: str = "Record was modified concurrently. Re-read and retry."):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="CONCURRENT_MODIFICATION",
        )


class OperationTimeoutError(FretMarineException):
    """The operation exceeded its timeout and was rolled back."""

    def __init__(self, operation: str, timeout: float):
        super().__init__(
            message=f"{operation} timed out after {timeout:.1f}s; no change was made",
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            error_code="OPERATION_TIMEOUT",
            details={"operation": operation, "timeout_seconds": timeout},
        )


# ── Rendering ────────────────────────────────────────────────


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    """Render the error envelope shared by every endpoint.

        {"error": {"code": "CAPACITY_EXCEEDED", "message": "...", "details": {...}}}

    ``details`` is omitted when empty.
    """
    body = {"code": code, "message": message}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content={"error": body})


def _where(request: Request) -> dict:
    return {"path": request.url.path, "method": request.method}


async def fretmarine_exception_handler(request: Request, exc: FretMarineException) -> JSONResponse:
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}",
        extra={"error_code": exc.error_code, **_where(request)},
    )
    return error_response(exc.status_code, exc.error_code, exc.message, exc.details)


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {exc.detail}", extra=_where(request))
    return error_response(exc.status_code, f"HTTP_{exc.status_code}", str(exc.detail))


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Flatten pydantic errors into ``[{"field": "body.amount_paid", ...}]``."""
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.info(f"Rejected payload on {request.url.path}: {len(errors)} error(s)", extra=_where(request))
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Request payload failed validation",
        {"errors": errors},
    )


async def integrity_exception_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """A constraint fired at commit, typically two writers racing for the same code."""
    raw = str(getattr(exc, "orig", exc)).lower()
    logger.error(f"Integrity error on {request.url.path}: {raw}", extra=_where(request))

    if "unique" in raw or "duplicate" in raw:
        code, message = "DUPLICATE_RECORD", "A record with this code already exists; retry the request"
    elif "foreign key" in raw:
        code, message = "UNKNOWN_REFERENCE", "A referenced client, container or cargo item does not exist"
    else:
        code, message = "CONSTRAINT_VIOLATION", "The change violates a database constraint"
    return error_response(status.HTTP_409_CONFLICT, code, message)


async def operational_exception_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error(f"Database unavailable on {request.url.path}: {exc}", extra=_where(request))
    return error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "DATABASE_UNAVAILABLE",
        "The ledger store is unreachable; nothing was changed",
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
        extra={**_where(request), "traceback": traceback.format_exc()},
        exc_info=True,
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
    )


_HANDLERS = (
    (FretMarineException, fretmarine_exception_handler),
    (HTTPException, http_exception_handler),
    (StarletteHTTPException, http_exception_handler),
    (RequestValidationError, validation_exception_handler),
    (ValidationError, validation_exception_handler),
    (IntegrityError, integrity_exception_handler),
    (OperationalError, operational_exception_handler),
    (Exception, general_exception_handler),
)


def register_exception_handlers(app) -> None:
    for exc_class, handler in _HANDLERS:
        app.add_exception_handler(exc_class, handler)
