"""Ledger accessor: read and aggregate helpers over the store.

Every helper takes the caller's AsyncSession so it runs inside the
caller's transaction.  Nothing here mutates rows.

  - get_*()              → single entity, ResourceNotFoundError when absent
  - membership_totals()  → fresh SUM over the items currently in a container
  - list_* / manifest    → read-only queries for the document/export layer
"""

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fretmarine.middleware.exceptions import ResourceNotFoundError
from fretmarine.models.assignment import ContainerAssignment
from fretmarine.models.cargo_item import CargoItem
from fretmarine.models.client import Client
from fretmarine.models.container import Container
from fretmarine.models.payment import Payment


# ── Single entities ──────────────────────────────────────────


async def get_client(
    db: AsyncSession, client_id: str, *, include_inactive: bool = False
) -> Client:
    """Load a client; archived clients only with ``include_inactive`` (balances, payments)."""
    stmt = select(Client).where(Client.id == client_id)
    if not include_inactive:
        stmt = stmt.where(Client.is_active == True)  # noqa: E712
    client = (await db.execute(stmt)).scalar_one_or_none()
    if not client:
        raise ResourceNotFoundError("Client", client_id)
    return client


async def get_cargo_item(
    db: AsyncSession, item_id: str, *, for_update: bool = False
) -> CargoItem:
    stmt = select(CargoItem).where(
        CargoItem.id == item_id,
        CargoItem.is_deleted == False,  # noqa: E712
    )
    if for_update:
        stmt = stmt.with_for_update()
    item = (await db.execute(stmt)).scalar_one_or_none()
    if not item:
        raise ResourceNotFoundError("Cargo item", item_id)
    return item


async def get_container(
    db: AsyncSession, container_id: str, *, for_update: bool = False
) -> Container:
    """Load a container; ``for_update`` locks its row until the transaction ends."""
    stmt = select(Container).where(
        Container.id == container_id,
        Container.is_deleted == False,  # noqa: E712
    )
    if for_update:
        stmt = stmt.with_for_update()
    container = (await db.execute(stmt)).scalar_one_or_none()
    if not container:
        raise ResourceNotFoundError("Container", container_id)
    return container


async def get_payment(
    db: AsyncSession, payment_id: str, *, for_update: bool = False
) -> Payment:
    stmt = select(Payment).where(Payment.id == payment_id)
    if for_update:
        stmt = stmt.with_for_update()
    payment = (await db.execute(stmt)).scalar_one_or_none()
    if not payment:
        raise ResourceNotFoundError("Payment", payment_id)
    return payment


# ── Aggregates ───────────────────────────────────────────────


def _member_filter(container_id: str):
    return (
        CargoItem.container_id == container_id,
        CargoItem.is_deleted == False,  # noqa: E712
    )


async def membership_totals(
    db: AsyncSession, container_id: str
) -> tuple[int, float, float]:
    """(item_count, weight_kg, volume_m3) of the items currently in the container.

    Null weights and volumes count as 0.
    """
    row = (
        await db.execute(
            select(
                func.count(CargoItem.id),
                func.coalesce(func.sum(CargoItem.weight_kg), 0.0),
                func.coalesce(func.sum(CargoItem.volume_m3), 0.0),
            ).where(*_member_filter(container_id))
        )
    ).one()
    return int(row[0] or 0), float(row[1] or 0.0), float(row[2] or 0.0)


async def list_container_items(db: AsyncSession, container_id: str) -> list[CargoItem]:
    result = await db.execute(
        select(CargoItem)
        .where(*_member_filter(container_id))
        .order_by(CargoItem.assigned_at, CargoItem.barcode)
    )
    return list(result.scalars().all())


async def list_cargo_items(
    db: AsyncSession,
    *,
    client_id: str | None = None,
    container_id: str | None = None,
    status: str | None = None,
    unassigned: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[CargoItem], int]:
    filters = [CargoItem.is_deleted == False]  # noqa: E712
    if client_id:
        filters.append(CargoItem.client_id == client_id)
    if container_id:
        filters.append(CargoItem.container_id == container_id)
    if status:
        filters.append(CargoItem.status == status)
    if unassigned:
        filters.append(CargoItem.container_id.is_(None))

    total = (
        await db.execute(select(func.count(CargoItem.id)).where(*filters))
    ).scalar() or 0
    result = await db.execute(
        select(CargoItem)
        .where(*filters)
        .order_by(CargoItem.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total


async def list_containers(
    db: AsyncSession,
    *,
    status: str | None = None,
    destination_country: str | None = None,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Container], int]:
    filters = [Container.is_deleted == False]  # noqa: E712
    if status:
        filters.append(Container.status == status)
    if destination_country:
        filters.append(Container.destination_country == destination_country)
    if search:
        pattern = f"%{search}%"
        filters.append(
            or_(
                Container.container_number.ilike(pattern),
                Container.file_number.ilike(pattern),
                Container.destination_port.ilike(pattern),
                Container.tracking_number.ilike(pattern),
            )
        )

    total = (
        await db.execute(select(func.count(Container.id)).where(*filters))
    ).scalar() or 0
    result = await db.execute(
        select(Container)
        .where(*filters)
        .order_by(Container.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total


async def container_stats(db: AsyncSession, container_id: str) -> dict:
    """Headline figures for a container detail page."""
    row = (
        await db.execute(
            select(
                func.count(func.distinct(CargoItem.client_id)),
                func.count(CargoItem.id),
                func.coalesce(func.sum(CargoItem.package_count), 0),
                func.coalesce(func.sum(CargoItem.declared_value), 0.0),
                func.coalesce(func.sum(CargoItem.cost_total), 0.0),
            ).where(*_member_filter(container_id))
        )
    ).one()

    collected = (
        await db.execute(
            select(func.coalesce(func.sum(Payment.amount_paid), 0.0)).where(
                Payment.status == "valid",
                or_(
                    Payment.container_id == container_id,
                    Payment.cargo_item_id.in_(
                        select(CargoItem.id).where(*_member_filter(container_id))
                    ),
                ),
            )
        )
    ).scalar() or 0.0

    return {
        "client_count": int(row[0] or 0),
        "item_count": int(row[1] or 0),
        "package_count": int(row[2] or 0),
        "total_declared_value": round(float(row[3] or 0.0), 2),
        "total_cost": round(float(row[4] or 0.0), 2),
        "amount_collected": round(float(collected), 2),
    }


async def get_manifest(
    db: AsyncSession, container_id: str, *, include_released: bool = False
) -> list[dict]:
    """Manifest lines: item, owning client and amount paid against the item.

    With ``include_released`` the items formerly carried by the container
    (from the assignment history) are listed too, flagged ``released``.
    """
    paid_sq = (
        select(
            Payment.cargo_item_id.label("item_id"),
            func.sum(Payment.amount_paid).label("paid"),
        )
        .where(Payment.status == "valid", Payment.cargo_item_id.is_not(None))
        .group_by(Payment.cargo_item_id)
        .subquery()
    )

    if include_released:
        member_ids = select(ContainerAssignment.cargo_item_id).where(
            ContainerAssignment.container_id == container_id
        )
        item_filter = CargoItem.id.in_(member_ids)
    else:
        item_filter = CargoItem.container_id == container_id

    result = await db.execute(
        select(CargoItem, Client.name, Client.first_name, paid_sq.c.paid)
        .join(Client, Client.id == CargoItem.client_id)
        .outerjoin(paid_sq, paid_sq.c.item_id == CargoItem.id)
        .where(item_filter, CargoItem.is_deleted == False)  # noqa: E712
        .order_by(Client.name, CargoItem.barcode)
    )

    lines = []
    for item, client_name, client_first_name, paid in result.all():
        paid = round(float(paid or 0.0), 2)
        lines.append({
            "cargo_item_id": item.id,
            "barcode": item.barcode,
            "designation": item.designation,
            "item_type": item.item_type,
            "package_count": item.package_count,
            "weight_kg": item.weight_kg,
            "volume_m3": item.volume_m3,
            "status": item.status,
            "client_id": item.client_id,
            "client_name": " ".join(p for p in (client_first_name, client_name) if p),
            "cost_total": item.cost_total,
            "amount_paid": paid,
            "amount_remaining": round((item.cost_total or 0.0) - paid, 2),
            "released": item.container_id != container_id,
        })
    return lines


async def list_payments(
    db: AsyncSession,
    *,
    client_id: str | None = None,
    container_id: str | None = None,
    cargo_item_id: str | None = None,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Payment], int]:
    filters = []
    if client_id:
        filters.append(Payment.client_id == client_id)
    if container_id:
        filters.append(Payment.container_id == container_id)
    if cargo_item_id:
        filters.append(Payment.cargo_item_id == cargo_item_id)
    if status:
        filters.append(Payment.status == status)

    total = (
        await db.execute(select(func.count(Payment.id)).where(*filters))
    ).scalar() or 0
    result = await db.execute(
        select(Payment)
        .where(*filters)
        .order_by(Payment.paid_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total
