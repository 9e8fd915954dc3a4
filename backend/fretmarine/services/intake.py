"""Intake service: creation of clients, cargo items and containers.

Handles:
  - Auto-generating business codes (CLI-, MAR-, CONT-/DOS- prefixes)
  - Computing cost_total from the cost components at intake
  - Recording the intake scan on the cargo item
  - Explicit cost corrections (the only path that changes cost_total later)

These writes touch a single new row each, so they run on the request
session from ``get_db`` rather than through the reconciliation facade.
"""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from fretmarine.middleware.exceptions import BusinessLogicError
from fretmarine.models.cargo_item import COST_FIELDS, CargoItem
from fretmarine.models.client import Client
from fretmarine.models.container import Container
from fretmarine.schemas.cargo_item import CargoCostUpdate, CargoItemCreate
from fretmarine.schemas.client import ClientCreate
from fretmarine.schemas.container import ContainerCreate
from fretmarine.services import ledger
from fretmarine.utils.activity import log_activity
from fretmarine.utils.numbering import generate_code


async def create_client(body: ClientCreate, actor_id: str | None, db: AsyncSession) -> Client:
    client = Client(
        code=await generate_code(db, "client"),
        **body.model_dump(),
    )
    db.add(client)
    await db.flush()

    await log_activity(
        db, actor_id,
        action="created", entity_type="client",
        entity_id=client.id, entity_code=client.code,
        summary=f"Created client {client.name}",
    )
    return client


async def create_cargo_item(
    body: CargoItemCreate, actor_id: str | None, db: AsyncSession
) -> CargoItem:
    """Register a cargo item received at the depot (status ``received``)."""
    client = await ledger.get_client(db, body.client_id)
    if client.status != "active":
        raise BusinessLogicError(
            f"Client {client.code} is {client.status}",
            error_code="CLIENT_NOT_ACTIVE",
        )

    now = datetime.utcnow()
    item = CargoItem(
        barcode=await generate_code(db, "cargo_item"),
        status="received",
        received_at=now,
        scan_history=[{
            "scanned_at": now.isoformat(),
            "action": "received",
            "location": "depot",
            "actor_id": actor_id,
        }],
        **body.model_dump(),
    )
    item.refresh_cost_total()
    db.add(item)
    await db.flush()

    await log_activity(
        db, actor_id,
        action="created", entity_type="cargo_item",
        entity_id=item.id, entity_code=item.barcode,
        summary=f"Received {item.designation} for {client.code}",
        details={"weight_kg": item.weight_kg, "volume_m3": item.volume_m3,
                 "cost_total": item.cost_total},
    )
    return item


async def correct_cargo_costs(
    item_id: str, body: CargoCostUpdate, actor_id: str | None, db: AsyncSession
) -> CargoItem:
    item = await ledger.get_cargo_item(db, item_id, for_update=True)
    changes = body.model_dump(exclude_unset=True, exclude={"reason"})
    if not changes:
        raise BusinessLogicError("No cost component given", error_code="NO_CHANGES")

    before = {f: getattr(item, f) for f in COST_FIELDS}
    for field, value in changes.items():
        setattr(item, field, value)
    previous_total = item.cost_total
    item.refresh_cost_total()
    await db.flush()

    await log_activity(
        db, actor_id,
        action="cost_corrected", entity_type="cargo_item",
        entity_id=item.id, entity_code=item.barcode,
        summary=f"Cost of {item.barcode}: {previous_total:.2f} → {item.cost_total:.2f}",
        details={"before": before, "after": changes, "reason": body.reason},
    )
    return item


async def create_container(
    body: ContainerCreate, actor_id: str | None, db: AsyncSession
) -> Container:
    """Open an empty container (status ``ouvert``, nothing used)."""
    container = Container(
        container_number=await generate_code(db, "container"),
        file_number=await generate_code(db, "file"),
        status="ouvert",
        used_weight_kg=0.0,
        used_volume_m3=0.0,
        **body.model_dump(),
    )
    db.add(container)
    await db.flush()

    await log_activity(
        db, actor_id,
        action="created", entity_type="container",
        entity_id=container.id, entity_code=container.container_number,
        summary=f"Opened {container.container_number} for {container.destination_port}",
    )
    return container
