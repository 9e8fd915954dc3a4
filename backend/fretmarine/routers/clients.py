"""Client endpoints.

Endpoints:
    POST /api/clients/                Register a client
    GET  /api/clients/{id}            Client detail
    GET  /api/clients/{id}/balance    Amount due / paid / remaining
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from fretmarine.auth.deps import Actor, require_permission
from fretmarine.database import get_db
from fretmarine.routers.deps import get_facade
from fretmarine.schemas.balance import BalanceOut
from fretmarine.schemas.client import ClientCreate, ClientOut
from fretmarine.services import intake, ledger
from fretmarine.services.facade import ReconciliationFacade

router = APIRouter()


@router.post("/", response_model=ClientOut, status_code=status.HTTP_201_CREATED)
async def create_client(
    body: ClientCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_permission("client.write")),
):
    return await intake.create_client(body, actor.id, db)


@router.get("/{client_id}", response_model=ClientOut)
async def get_client(
    client_id: str,
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(require_permission("client.read")),
):
    return await ledger.get_client(db, client_id)


@router.get("/{client_id}/balance", response_model=BalanceOut)
async def get_client_balance(
    client_id: str,
    facade: ReconciliationFacade = Depends(get_facade),
    _actor: Actor = Depends(require_permission("client.read", "payment.read")),
):
    balance = await facade.balance("client", client_id)
    return balance.as_dict()
