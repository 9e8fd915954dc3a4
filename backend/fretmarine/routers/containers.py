"""Container endpoints: CRUD reads, admission and lifecycle.

Endpoints:
    POST /api/containers/                  Open an empty container
    GET  /api/containers/                  List (filters: status, destination_country, search)
    GET  /api/containers/{id}              Detail with capacity, stats and next statuses
    GET  /api/containers/{id}/manifest     Manifest lines (optionally with released items)
    POST /api/containers/{id}/assign       Admit a cargo item
    POST /api/containers/{id}/unassign     Release a cargo item
    POST /api/containers/{id}/close        Close (items move to in_transit)
    POST /api/containers/{id}/reopen       Reopen a closed container
    POST /api/containers/{id}/advance      Move along the lifecycle
    POST /api/containers/{id}/recompute    Rebuild used capacity from membership
    GET  /api/containers/{id}/balance      Amount due / paid / remaining

Every mutation goes through the reconciliation facade.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fretmarine.auth.deps import Actor, require_permission
from fretmarine.database import get_db
from fretmarine.middleware.exceptions import BusinessLogicError
from fretmarine.routers.deps import get_facade
from fretmarine.schemas.balance import BalanceOut
from fretmarine.schemas.common import CapacityOut, PaginatedResponse
from fretmarine.schemas.container import (
    AdvanceRequest,
    AssignmentOut,
    AssignRequest,
    ContainerCreate,
    ContainerDetail,
    ContainerSummary,
    LifecycleOut,
    ManifestOut,
    UnassignRequest,
)
from fretmarine.services import capacity, intake, ledger, lifecycle
from fretmarine.services.facade import ReconciliationFacade

router = APIRouter()


# ── CRUD reads ───────────────────────────────────────────────

@router.post("/", response_model=ContainerSummary, status_code=status.HTTP_201_CREATED)
async def create_container(
    body: ContainerCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_permission("container.write")),
):
    return await intake.create_container(body, actor.id, db)


@router.get("/", response_model=PaginatedResponse[ContainerSummary])
async def list_containers(
    status_filter: str | None = Query(None, alias="status"),
    destination_country: str | None = Query(None),
    search: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(require_permission("container.read")),
):
    containers, total = await ledger.list_containers(
        db,
        status=status_filter,
        destination_country=destination_country,
        search=search,
        limit=limit,
        offset=offset,
    )
    return PaginatedResponse(
        items=[ContainerSummary.model_validate(c) for c in containers],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{container_id}", response_model=ContainerDetail)
async def get_container(
    container_id: str,
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(require_permission("container.read")),
):
    container = await ledger.get_container(db, container_id)
    detail = ContainerDetail.model_validate(container)
    detail.fill_rate = capacity.fill_rate(container)
    detail.allowed_next = lifecycle.allowed_next(container.status)
    detail.stats = await ledger.container_stats(db, container_id)
    return detail


@router.get("/{container_id}/manifest", response_model=ManifestOut)
async def get_manifest(
    container_id: str,
    include_released: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(require_permission("container.manifest")),
):
    container = await ledger.get_container(db, container_id)
    lines = await ledger.get_manifest(db, container_id, include_released=include_released)
    return {
        "container_id": container.id,
        "container_number": container.container_number,
        "status": container.status,
        "lines": lines,
    }


# ── Admission ────────────────────────────────────────────────

@router.post("/{container_id}/assign", response_model=AssignmentOut)
async def assign_item(
    container_id: str,
    body: AssignRequest,
    facade: ReconciliationFacade = Depends(get_facade),
    actor: Actor = Depends(require_permission("cargo_item.assign")),
):
    result = await facade.assign_item(
        body.cargo_item_id,
        container_id,
        actor_id=actor.id,
        position=body.position_in_container,
    )
    return result.as_dict()


@router.post("/{container_id}/unassign", response_model=AssignmentOut)
async def unassign_item(
    container_id: str,
    body: UnassignRequest,
    facade: ReconciliationFacade = Depends(get_facade),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_permission("cargo_item.assign")),
):
    item = await ledger.get_cargo_item(db, body.cargo_item_id)
    if item.container_id not in (None, container_id):
        raise BusinessLogicError(
            f"Cargo item {item.barcode} is not in container {container_id}",
            error_code="NOT_IN_CONTAINER",
            details={"container_id": item.container_id},
        )
    result = await facade.unassign_item(body.cargo_item_id, actor_id=actor.id)
    return result.as_dict()


# ── Lifecycle ────────────────────────────────────────────────

@router.post("/{container_id}/close", response_model=LifecycleOut)
async def close_container(
    container_id: str,
    facade: ReconciliationFacade = Depends(get_facade),
    actor: Actor = Depends(require_permission("container.close")),
):
    result = await facade.close_container(container_id, actor_id=actor.id)
    return result.as_dict()


@router.post("/{container_id}/reopen", response_model=LifecycleOut)
async def reopen_container(
    container_id: str,
    facade: ReconciliationFacade = Depends(get_facade),
    actor: Actor = Depends(require_permission("container.reopen")),
):
    result = await facade.reopen_container(container_id, actor_id=actor.id)
    return result.as_dict()


@router.post("/{container_id}/advance", response_model=LifecycleOut)
async def advance_container(
    container_id: str,
    body: AdvanceRequest,
    facade: ReconciliationFacade = Depends(get_facade),
    actor: Actor = Depends(require_permission("container.advance")),
):
    result = await facade.advance_container(container_id, body.status, actor_id=actor.id)
    return result.as_dict()


@router.post("/{container_id}/recompute", response_model=CapacityOut)
async def recompute_capacity(
    container_id: str,
    facade: ReconciliationFacade = Depends(get_facade),
    actor: Actor = Depends(require_permission("container.write")),
):
    figures = await facade.recompute_capacity(container_id, actor_id=actor.id)
    return figures.as_dict()


@router.get("/{container_id}/balance", response_model=BalanceOut)
async def get_container_balance(
    container_id: str,
    facade: ReconciliationFacade = Depends(get_facade),
    _actor: Actor = Depends(require_permission("container.read", "payment.read")),
):
    balance = await facade.balance("container", container_id)
    return balance.as_dict()
