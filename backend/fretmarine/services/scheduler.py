"""Background task scheduler: daily capacity audit.

Uses FastAPI's lifespan context to start/stop an asyncio background loop
that fires once per day at ``settings.capacity_audit_hour`` (UTC).  The
audit compares every non-closed container's stored used weight/volume
with a fresh membership sum and recomputes the ones that drifted.

The same audit is available on demand:

    python -m fretmarine.cli audit-capacity
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI
from sqlalchemy import select

from fretmarine.config import settings
from fretmarine.database import async_session
from fretmarine.models.container import Container
from fretmarine.services import capacity

logger = logging.getLogger("fretmarine.scheduler")


async def run_capacity_audit(session_factory=async_session, facade=None) -> dict:
    """Recompute every non-closed container whose aggregates drifted.

    With a facade, each correction goes through ``recompute_capacity`` so
    it takes the container lock and publishes an event.
    """
    logger.info("Starting capacity audit")

    async with session_factory() as db:
        containers = (
            await db.execute(
                select(Container).where(
                    Container.status != "cloture",
                    Container.is_deleted == False,  # noqa: E712
                )
            )
        ).scalars().all()

        drifted = []
        for container in containers:
            fresh = await capacity.detect_drift(db, container)
            if fresh is not None:
                logger.warning(
                    "Capacity drift on %s: stored %.3f kg / %.3f m3, membership %.3f kg / %.3f m3",
                    container.container_number,
                    container.used_weight_kg or 0.0,
                    container.used_volume_m3 or 0.0,
                    fresh.used_weight_kg,
                    fresh.used_volume_m3,
                )
                drifted.append(container.id)

        if facade is None and drifted:
            for container in containers:
                if container.id in drifted:
                    await capacity.recompute(db, container)
            await db.commit()

    if facade is not None:
        for container_id in drifted:
            await facade.recompute_capacity(container_id)

    summary = {"checked": len(containers), "corrected": len(drifted), "container_ids": drifted}
    logger.info(
        "Capacity audit complete: %d checked, %d corrected",
        summary["checked"],
        summary["corrected"],
    )
    return summary


def _seconds_until(target_hour: int, now: datetime | None = None) -> float:
    now = now or datetime.now(timezone.utc)
    next_run = now.replace(hour=target_hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()


async def _scheduler_loop(facade=None) -> None:
    """Sleep loop that fires the capacity audit once per day."""
    while True:
        wait_seconds = _seconds_until(settings.capacity_audit_hour)
        logger.info("Next capacity audit in %.0f seconds", wait_seconds)

        await asyncio.sleep(wait_seconds)

        try:
            await run_capacity_audit(facade=facade)
        except Exception:
            logger.exception("Unhandled error in capacity audit")

        # Small buffer to avoid running twice in the same minute
        await asyncio.sleep(60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan: build the facade, start the audit loop, clean up on shutdown."""
    from fretmarine.routers.deps import build_facade
    from fretmarine.utils.cache import close_redis

    facade = await build_facade()
    app.state.facade = facade
    task = asyncio.create_task(_scheduler_loop(facade))
    logger.info("Capacity audit scheduler started")
    try:
        yield
    finally:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        await facade.events.drain()
        await close_redis()
        logger.info("Capacity audit scheduler stopped")
