"""Container lifecycle state machine.

    ouvert → en_preparation → en_transit → arrive → cloture
    cloture → ouvert                         (reopen, the only backward edge)

``close`` is the explicit close operation and is accepted from any
non-closed status; ``advance`` only follows the edge table, so it reaches
cloture from arrive alone.  It is the only transition with a multi-row side
effect: every assigned item not yet terminal moves to in_transit in the
same transaction as the status flip.  ``reopen`` does not revert item
statuses.
"""

import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from fretmarine.middleware.exceptions import EmptyContainerError, InvalidTransitionError
from fretmarine.models.cargo_item import TERMINAL_STATUSES, CargoItem
from fretmarine.models.container import Container
from fretmarine.services.ledger import membership_totals

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    "ouvert": ["en_preparation"],
    "en_preparation": ["en_transit"],
    "en_transit": ["arrive"],
    "arrive": ["cloture"],
    "cloture": ["ouvert"],
}


def validate_transition(current_status: str, new_status: str) -> None:
    """Raise InvalidTransitionError unless *new_status* is an edge from *current_status*."""
    if current_status == new_status:
        return  # no-op

    if new_status not in ALLOWED_TRANSITIONS.get(current_status, []):
        raise InvalidTransitionError("container", current_status, new_status)


def can_transition(current_status: str, new_status: str) -> bool:
    try:
        validate_transition(current_status, new_status)
        return True
    except InvalidTransitionError:
        return False


def allowed_next(current_status: str) -> list[str]:
    """Statuses reachable from *current_status*, including the explicit close."""
    targets = list(ALLOWED_TRANSITIONS.get(current_status, []))
    if current_status != "cloture" and "cloture" not in targets:
        targets.append("cloture")
    return targets


async def close(db: AsyncSession, container: Container) -> int:
    """Close *container* and move its non-terminal items to in_transit.

    Returns the number of items transitioned.
    """
    if container.status == "cloture":
        raise InvalidTransitionError("container", container.status, "cloture")

    item_count, _, _ = await membership_totals(db, container.id)
    if item_count == 0:
        raise EmptyContainerError(container.container_number)

    result = await db.execute(
        update(CargoItem)
        .where(
            CargoItem.container_id == container.id,
            CargoItem.is_deleted == False,  # noqa: E712
            CargoItem.status.not_in(TERMINAL_STATUSES),
        )
        .values(status="in_transit", updated_at=datetime.utcnow())
        .returning(CargoItem.id)
        .execution_options(synchronize_session="fetch")
    )
    transitioned = len(result.all())

    previous = container.status
    container.status = "cloture"
    container.closed_at = datetime.utcnow()
    await db.flush()

    logger.info(
        f"Closed {container.container_number} ({previous} → cloture), "
        f"{transitioned} of {item_count} items now in transit"
    )
    return transitioned


async def reopen(db: AsyncSession, container: Container) -> None:
    if container.status != "cloture":
        raise InvalidTransitionError("container", container.status, "ouvert")

    container.status = "ouvert"
    container.reopened_at = datetime.utcnow()
    await db.flush()
    logger.info(f"Reopened {container.container_number}")


async def advance(db: AsyncSession, container: Container, next_status: str) -> bool:
    """Move *container* along the edge table.  Returns False on a same-status no-op."""
    current = container.status
    if next_status == current:
        return False

    validate_transition(current, next_status)

    if next_status == "cloture":
        await close(db, container)
        return True
    if next_status == "ouvert":
        await reopen(db, container)
        return True

    container.status = next_status
    now = datetime.utcnow()
    if next_status == "en_transit":
        container.departed_at = now
    elif next_status == "arrive":
        container.arrived_at = now
    await db.flush()

    logger.info(f"Container {container.container_number}: {current} → {next_status}")
    return True
