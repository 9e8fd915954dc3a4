"""Capacity tracker tests."""

import pytest

from fretmarine.models.cargo_item import CargoItem
from fretmarine.models.container import Container
from fretmarine.services import capacity


def _container(cap_weight=0.0, cap_volume=0.0, used_weight=0.0, used_volume=0.0) -> Container:
    return Container(
        capacity_weight_kg=cap_weight,
        capacity_volume_m3=cap_volume,
        used_weight_kg=used_weight,
        used_volume_m3=used_volume,
    )


@pytest.mark.unit
class TestOverflow:
    """Headroom checks on declared capacity."""

    def test_item_that_fits_exactly(self):
        container = _container(cap_weight=1000.0, used_weight=600.0)
        assert capacity.overflow(container, CargoItem(weight_kg=400.0)) == (0.0, 0.0)
        assert capacity.fits(container, CargoItem(weight_kg=400.0))

    def test_weight_overflow_reports_excess(self):
        container = _container(cap_weight=1000.0, used_weight=600.0)
        weight_over, volume_over = capacity.overflow(container, CargoItem(weight_kg=500.0))
        assert weight_over == 100.0
        assert volume_over == 0.0
        assert not capacity.fits(container, CargoItem(weight_kg=500.0))

    def test_volume_overflow_independent_of_weight(self):
        container = _container(cap_weight=1000.0, cap_volume=10.0, used_volume=9.5)
        item = CargoItem(weight_kg=1.0, volume_m3=1.0)
        assert capacity.overflow(container, item) == (0.0, 0.5)

    def test_zero_capacity_axis_is_unlimited(self):
        container = _container(cap_weight=0.0, cap_volume=0.0, used_weight=50_000.0)
        assert capacity.fits(container, CargoItem(weight_kg=10_000.0, volume_m3=80.0))

    def test_missing_measures_count_as_zero(self):
        container = _container(cap_weight=100.0, used_weight=100.0)
        assert capacity.fits(container, CargoItem(weight_kg=None, volume_m3=None))

    def test_float_noise_does_not_reject(self):
        container = _container(cap_weight=0.3, used_weight=0.1 + 0.1)
        assert capacity.fits(container, CargoItem(weight_kg=0.1))


@pytest.mark.unit
class TestFillRate:

    def test_volume_preferred(self):
        container = _container(cap_weight=1000.0, cap_volume=20.0, used_weight=100.0, used_volume=5.0)
        assert capacity.fill_rate(container) == 25.0

    def test_falls_back_to_weight(self):
        container = _container(cap_weight=1000.0, used_weight=600.0)
        assert capacity.fill_rate(container) == 60.0

    def test_unconfigured(self):
        assert capacity.fill_rate(_container()) is None


@pytest.mark.integration
@pytest.mark.asyncio
class TestRecompute:
    """Aggregates are derived from membership, never incremented."""

    async def test_recompute_sums_current_members(
        self, facade, make_client, make_container, make_item, session_factory
    ):
        client = await make_client()
        container = await make_container(capacity_weight_kg=0.0)
        a = await make_item(client.id, weight_kg=120.5, volume_m3=1.25)
        b = await make_item(client.id, weight_kg=79.5, volume_m3=0.75)
        await facade.assign_item(a.id, container.id)
        await facade.assign_item(b.id, container.id)

        async with session_factory() as db:
            loaded = await db.get(Container, container.id)
            figures = await capacity.recompute(db, loaded)

        assert figures.used_weight_kg == 200.0
        assert figures.used_volume_m3 == 2.0
        assert figures.item_count == 2

    async def test_recompute_is_idempotent(
        self, facade, make_client, make_container, make_item, session_factory
    ):
        client = await make_client()
        container = await make_container()
        item = await make_item(client.id, weight_kg=300.0)
        await facade.assign_item(item.id, container.id)

        async with session_factory() as db:
            loaded = await db.get(Container, container.id)
            first = await capacity.recompute(db, loaded)
            second = await capacity.recompute(db, loaded)

        assert first == second

    async def test_detect_drift(
        self, facade, make_client, make_container, make_item, session_factory
    ):
        client = await make_client()
        container = await make_container()
        item = await make_item(client.id, weight_kg=300.0)
        await facade.assign_item(item.id, container.id)

        async with session_factory() as db:
            loaded = await db.get(Container, container.id)
            assert await capacity.detect_drift(db, loaded) is None

            loaded.used_weight_kg = 999.0
            drift = await capacity.detect_drift(db, loaded)
            assert drift is not None
            assert drift.used_weight_kg == 300.0
            # detect_drift writes nothing
            assert loaded.used_weight_kg == 999.0

    async def test_recompute_capacity_corrects_drift_and_publishes(
        self, facade, recorder, make_client, make_container, make_item, session_factory, fetch
    ):
        client = await make_client()
        container = await make_container()
        item = await make_item(client.id, weight_kg=300.0)
        await facade.assign_item(item.id, container.id)

        async with session_factory() as db:
            loaded = await db.get(Container, container.id)
            loaded.used_weight_kg = 5.0
            await db.commit()

        figures = await facade.recompute_capacity(container.id)
        await facade.events.drain()

        assert figures.used_weight_kg == 300.0
        assert (await fetch(Container, container.id)).used_weight_kg == 300.0
        assert recorder.kinds()[-1] == "capacity_recomputed"

    async def test_recompute_without_drift_is_silent(
        self, facade, recorder, make_container
    ):
        container = await make_container()
        figures = await facade.recompute_capacity(container.id)
        await facade.events.drain()

        assert figures.item_count == 0
        assert recorder.events == []
