"""Capacity audit tests."""

from datetime import datetime, timezone

import pytest

from fretmarine.models.container import Container
from fretmarine.services.scheduler import _seconds_until, run_capacity_audit


async def _corrupt(session_factory, container_id: str, weight: float) -> None:
    async with session_factory() as db:
        (await db.get(Container, container_id)).used_weight_kg = weight
        await db.commit()


@pytest.mark.integration
@pytest.mark.asyncio
class TestCapacityAudit:

    async def test_audit_corrects_drift(
        self, facade, session_factory, make_client, make_container, make_item, fetch
    ):
        client = await make_client()
        healthy = await make_container()
        drifted = await make_container()
        a = await make_item(client.id, weight_kg=100.0)
        b = await make_item(client.id, weight_kg=250.0)
        await facade.assign_item(a.id, healthy.id)
        await facade.assign_item(b.id, drifted.id)
        await _corrupt(session_factory, drifted.id, 10.0)

        summary = await run_capacity_audit(session_factory)

        assert summary["checked"] == 2
        assert summary["corrected"] == 1
        assert summary["container_ids"] == [drifted.id]
        assert (await fetch(Container, drifted.id)).used_weight_kg == 250.0

    async def test_audit_through_facade_publishes(
        self, facade, recorder, session_factory, make_client, make_container, make_item, fetch
    ):
        client = await make_client()
        container = await make_container()
        item = await make_item(client.id, weight_kg=80.0)
        await facade.assign_item(item.id, container.id)
        await _corrupt(session_factory, container.id, 0.0)

        summary = await run_capacity_audit(session_factory, facade=facade)
        await facade.events.drain()

        assert summary["corrected"] == 1
        assert (await fetch(Container, container.id)).used_weight_kg == 80.0
        assert recorder.kinds()[-1] == "capacity_recomputed"

    async def test_closed_containers_skipped(
        self, facade, session_factory, make_client, make_container, make_item
    ):
        client = await make_client()
        container = await make_container()
        item = await make_item(client.id)
        await facade.assign_item(item.id, container.id)
        await facade.close_container(container.id)
        await _corrupt(session_factory, container.id, 0.0)

        summary = await run_capacity_audit(session_factory)
        assert summary == {"checked": 0, "corrected": 0, "container_ids": []}


@pytest.mark.unit
class TestSchedule:

    def test_later_today(self):
        now = datetime(2026, 3, 1, 1, 30, tzinfo=timezone.utc)
        assert _seconds_until(3, now) == 90 * 60

    def test_rolls_to_tomorrow(self):
        now = datetime(2026, 3, 1, 3, 0, tzinfo=timezone.utc)
        assert _seconds_until(3, now) == 24 * 3600
