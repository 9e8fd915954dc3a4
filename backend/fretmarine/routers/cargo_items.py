"""Cargo item endpoints.

Endpoints:
    POST  /api/cargo-items/               Register a received cargo item
    GET   /api/cargo-items/               List (filters: client, container, status, unassigned)
    GET   /api/cargo-items/{id}           Item detail
    PATCH /api/cargo-items/{id}/costs     Explicit cost correction
    GET   /api/cargo-items/{id}/balance   Amount due / paid / remaining
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fretmarine.auth.deps import Actor, require_permission
from fretmarine.database import get_db
from fretmarine.routers.deps import get_facade
from fretmarine.schemas.balance import BalanceOut
from fretmarine.schemas.cargo_item import CargoCostUpdate, CargoItemCreate, CargoItemOut
from fretmarine.schemas.common import PaginatedResponse
from fretmarine.services import finance, intake, ledger
from fretmarine.services.facade import ReconciliationFacade

router = APIRouter()


@router.post("/", response_model=CargoItemOut, status_code=status.HTTP_201_CREATED)
async def create_cargo_item(
    body: CargoItemCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_permission("cargo_item.write")),
):
    return await intake.create_cargo_item(body, actor.id, db)


@router.get("/", response_model=PaginatedResponse[CargoItemOut])
async def list_cargo_items(
    client_id: str | None = Query(None),
    container_id: str | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    unassigned: bool = Query(False),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(require_permission("cargo_item.read")),
):
    items, total = await ledger.list_cargo_items(
        db,
        client_id=client_id,
        container_id=container_id,
        status=status_filter,
        unassigned=unassigned,
        limit=limit,
        offset=offset,
    )
    return PaginatedResponse(
        items=[CargoItemOut.model_validate(i) for i in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{item_id}", response_model=CargoItemOut)
async def get_cargo_item(
    item_id: str,
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(require_permission("cargo_item.read")),
):
    return await ledger.get_cargo_item(db, item_id)


@router.patch("/{item_id}/costs", response_model=CargoItemOut)
async def correct_cargo_costs(
    item_id: str,
    body: CargoCostUpdate,
    db: AsyncSession = Depends(get_db),
    facade: ReconciliationFacade = Depends(get_facade),
    actor: Actor = Depends(require_permission("cargo_item.write", "payment.write")),
):
    item = await intake.correct_cargo_costs(item_id, body, actor.id, db)
    scopes = await finance.scopes_for_item(db, item)
    await db.commit()
    if facade.cache is not None:
        await facade.cache.invalidate(scopes)
    return item


@router.get("/{item_id}/balance", response_model=BalanceOut)
async def get_cargo_item_balance(
    item_id: str,
    facade: ReconciliationFacade = Depends(get_facade),
    _actor: Actor = Depends(require_permission("cargo_item.read", "payment.read")),
):
    balance = await facade.balance("cargo_item", item_id)
    return balance.as_dict()
