"""Client payment recording.

Endpoints:
    POST /api/payments/               Record a payment (receipt REC-YYYYMMDD-NNN)
    GET  /api/payments/               List (filters: client, container, cargo item, status)
    GET  /api/payments/summary        Totals collected / outstanding, per method
    POST /api/payments/{id}/cancel    Cancel (status flip, never a delete)
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fretmarine.auth.deps import Actor, require_permission
from fretmarine.database import get_db
from fretmarine.routers.deps import get_facade
from fretmarine.schemas.common import PaginatedResponse
from fretmarine.schemas.payment import (
    FinancialSummaryOut,
    PaymentCancel,
    PaymentCreate,
    PaymentOut,
)
from fretmarine.services import finance, ledger
from fretmarine.services.facade import ReconciliationFacade

router = APIRouter()


@router.post("/", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
async def record_payment(
    body: PaymentCreate,
    facade: ReconciliationFacade = Depends(get_facade),
    actor: Actor = Depends(require_permission("payment.write")),
):
    return await facade.record_payment(**body.model_dump(), actor_id=actor.id)


@router.get("/", response_model=PaginatedResponse[PaymentOut])
async def list_payments(
    client_id: str | None = Query(None),
    container_id: str | None = Query(None),
    cargo_item_id: str | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(require_permission("payment.read")),
):
    payments, total = await ledger.list_payments(
        db,
        client_id=client_id,
        container_id=container_id,
        cargo_item_id=cargo_item_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )
    return PaginatedResponse(
        items=[PaymentOut.model_validate(p) for p in payments],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/summary", response_model=FinancialSummaryOut)
async def payment_summary(
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(require_permission("report.financial")),
):
    return await finance.financial_summary(db)


@router.post("/{payment_id}/cancel", response_model=PaymentOut)
async def cancel_payment(
    payment_id: str,
    body: PaymentCancel,
    facade: ReconciliationFacade = Depends(get_facade),
    actor: Actor = Depends(require_permission("payment.cancel")),
):
    return await facade.cancel_payment(payment_id, reason=body.reason, actor_id=actor.id)
