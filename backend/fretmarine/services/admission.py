"""Admission controller: move cargo items into and out of containers.

Callers hold the container row lock (``get_container(for_update=True)``)
and the per-container asyncio lock; these functions only check guards
and mutate the session.  Nothing is committed here.

assign guards, in order:
  1. already in this container     → no-op (changed=False)
  2. already in another container  → AlreadyAssignedError
  3. container not ouvert/en_preparation → ContainerClosedError
  4. used + item > declared        → CapacityExceededError
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fretmarine.middleware.exceptions import (
    AlreadyAssignedError,
    CapacityExceededError,
    ContainerClosedError,
)
from fretmarine.models.assignment import ContainerAssignment
from fretmarine.models.cargo_item import (
    EXCEPTION_STATUSES,
    PRE_ASSIGNMENT_STATUSES,
    CargoItem,
)
from fretmarine.models.container import ASSIGNABLE_STATUSES, Container
from fretmarine.services import capacity
from fretmarine.services.capacity import CapacityFigures

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssignmentResult:
    cargo_item_id: str
    container_id: str | None
    changed: bool
    item_status: str
    capacity: CapacityFigures

    def as_dict(self) -> dict:
        return {
            "cargo_item_id": self.cargo_item_id,
            "container_id": self.container_id,
            "changed": self.changed,
            "item_status": self.item_status,
            "capacity": self.capacity.as_dict(),
        }


def _append_scan(item: CargoItem, action: str, actor_id: str | None, location: str | None) -> None:
    history = list(item.scan_history or [])
    history.append({
        "scanned_at": datetime.utcnow().isoformat(),
        "action": action,
        "location": location,
        "actor_id": actor_id,
    })
    item.scan_history = history


async def assign(
    db: AsyncSession,
    item: CargoItem,
    container: Container,
    *,
    actor_id: str | None = None,
    position: str | None = None,
) -> AssignmentResult:
    """Admit *item* into *container* or raise without touching anything."""
    if item.container_id == container.id:
        figures = await capacity.recompute(db, container)
        return AssignmentResult(item.id, container.id, False, item.status, figures)

    if item.container_id is not None:
        raise AlreadyAssignedError(item.barcode, item.container_id)

    if container.status not in ASSIGNABLE_STATUSES:
        raise ContainerClosedError(container.container_number, container.status, "assign")

    # Fresh membership figures, not the stored aggregate
    await capacity.recompute(db, container)
    weight_over, volume_over = capacity.overflow(container, item)
    if weight_over > 0 or volume_over > 0:
        raise CapacityExceededError(
            container.container_number,
            overflow_weight_kg=weight_over,
            overflow_volume_m3=volume_over,
        )

    now = datetime.utcnow()
    item.container_id = container.id
    item.assigned_at = now
    if position is not None:
        item.position_in_container = position
    if item.status in PRE_ASSIGNMENT_STATUSES:
        item.status = "assigned"
    _append_scan(item, "assigned", actor_id, container.container_number)

    db.add(ContainerAssignment(
        cargo_item_id=item.id,
        container_id=container.id,
        assigned_at=now,
        assigned_by=actor_id,
    ))

    figures = await capacity.recompute(db, container)
    logger.info(
        f"Assigned {item.barcode} to {container.container_number} "
        f"({figures.used_weight_kg} kg / {figures.used_volume_m3} m3)"
    )
    return AssignmentResult(item.id, container.id, True, item.status, figures)


async def unassign(
    db: AsyncSession,
    item: CargoItem,
    container: Container | None,
    *,
    actor_id: str | None = None,
) -> AssignmentResult:
    """Release *item* from its container.  An unassigned item is a no-op."""
    if item.container_id is None or container is None:
        figures = (
            await capacity.recompute(db, container) if container is not None
            else CapacityFigures(0.0, 0.0, 0)
        )
        return AssignmentResult(
            item.id, container.id if container else None, False, item.status, figures
        )

    if container.status == "cloture":
        raise ContainerClosedError(container.container_number, container.status, "unassign")

    now = datetime.utcnow()
    item.container_id = None
    item.assigned_at = None
    item.position_in_container = None
    if item.status not in EXCEPTION_STATUSES:
        item.status = "pending"
    _append_scan(item, "unassigned", actor_id, container.container_number)

    open_rows = (
        await db.execute(
            select(ContainerAssignment).where(
                ContainerAssignment.cargo_item_id == item.id,
                ContainerAssignment.container_id == container.id,
                ContainerAssignment.released_at.is_(None),
            )
        )
    ).scalars().all()
    for row in open_rows:
        row.released_at = now
        row.released_by = actor_id

    figures = await capacity.recompute(db, container)
    logger.info(f"Released {item.barcode} from {container.container_number}")
    return AssignmentResult(item.id, container.id, True, item.status, figures)
