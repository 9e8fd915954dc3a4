"""Capacity tracker: derive a container's used weight/volume from membership.

``used_weight_kg`` / ``used_volume_m3`` on the container row are only
ever written here, always from a fresh SUM over the items currently
assigned, never by incrementing.  A declared capacity of 0 means the
axis is not configured and is treated as unlimited.
"""

from dataclasses import asdict, dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from fretmarine.models.cargo_item import CargoItem
from fretmarine.models.container import Container
from fretmarine.services.ledger import membership_totals

# Float sums of many small items drift in the last digits
_EPSILON = 1e-6


@dataclass(frozen=True)
class CapacityFigures:
    used_weight_kg: float
    used_volume_m3: float
    item_count: int

    def as_dict(self) -> dict:
        return asdict(self)


async def recompute(db: AsyncSession, container: Container) -> CapacityFigures:
    """Rewrite the container's aggregates from its membership.  Idempotent."""
    await db.flush()
    count, weight, volume = await membership_totals(db, container.id)
    figures = CapacityFigures(
        used_weight_kg=round(weight, 3),
        used_volume_m3=round(volume, 3),
        item_count=count,
    )
    container.used_weight_kg = figures.used_weight_kg
    container.used_volume_m3 = figures.used_volume_m3
    await db.flush()
    return figures


def overflow(container: Container, item: CargoItem) -> tuple[float, float]:
    """Amount by which admitting *item* would exceed each axis (0 = fits)."""
    weight_over = 0.0
    volume_over = 0.0

    cap_weight = container.capacity_weight_kg or 0.0
    if cap_weight > 0:
        projected = (container.used_weight_kg or 0.0) + (item.weight_kg or 0.0)
        if projected > cap_weight + _EPSILON:
            weight_over = round(projected - cap_weight, 3)

    cap_volume = container.capacity_volume_m3 or 0.0
    if cap_volume > 0:
        projected = (container.used_volume_m3 or 0.0) + (item.volume_m3 or 0.0)
        if projected > cap_volume + _EPSILON:
            volume_over = round(projected - cap_volume, 3)

    return weight_over, volume_over


def fits(container: Container, item: CargoItem) -> bool:
    weight_over, volume_over = overflow(container, item)
    return weight_over == 0 and volume_over == 0


def fill_rate(container: Container) -> float | None:
    """Percent of declared volume used (weight when volume is unlimited)."""
    if container.capacity_volume_m3 and container.capacity_volume_m3 > 0:
        return round(100.0 * (container.used_volume_m3 or 0.0) / container.capacity_volume_m3, 1)
    if container.capacity_weight_kg and container.capacity_weight_kg > 0:
        return round(100.0 * (container.used_weight_kg or 0.0) / container.capacity_weight_kg, 1)
    return None


async def detect_drift(db: AsyncSession, container: Container) -> CapacityFigures | None:
    """Fresh figures when the stored aggregates disagree with membership, else None.

    Writes nothing.
    """
    count, weight, volume = await membership_totals(db, container.id)
    if (
        abs((container.used_weight_kg or 0.0) - weight) > 1e-3
        or abs((container.used_volume_m3 or 0.0) - volume) > 1e-3
    ):
        return CapacityFigures(
            used_weight_kg=round(weight, 3),
            used_volume_m3=round(volume, 3),
            item_count=count,
        )
    return None
