"""Tests for balance caching."""

import json

import pytest
import redis.asyncio as redis

from fretmarine.services.finance import BalanceScope
from fretmarine.utils.cache import BalanceCache, balance_key


class InMemoryRedis:
    """The subset of the redis.asyncio client BalanceCache uses."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            removed += self.store.pop(key, None) is not None
        return removed


class DownRedis:
    async def get(self, key):
        raise redis.ConnectionError("connection refused")

    async def setex(self, key, ttl, value):
        raise redis.ConnectionError("connection refused")

    async def delete(self, *keys):
        raise redis.ConnectionError("connection refused")


@pytest.mark.cache
@pytest.mark.asyncio
class TestBalanceCache:

    async def test_set_then_get(self):
        backend = InMemoryRedis()
        cache = BalanceCache(backend, ttl=60)

        await cache.set("client", "c1", {"due": 10.0})

        assert backend.ttls[balance_key("client", "c1")] == 60
        assert await cache.get("client", "c1") == {"due": 10.0}
        assert await cache.get("client", "c2") is None

    async def test_invalidate_scopes(self):
        backend = InMemoryRedis()
        cache = BalanceCache(backend, ttl=60)
        await cache.set("client", "c1", {"due": 1.0})
        await cache.set("container", "k1", {"due": 2.0})
        await cache.set("container", "k2", {"due": 3.0})

        await cache.invalidate([BalanceScope("client", "c1"), BalanceScope("container", "k1")])

        assert list(backend.store) == [balance_key("container", "k2")]

    async def test_zero_ttl_disables(self):
        backend = InMemoryRedis()
        cache = BalanceCache(backend, ttl=0)
        await cache.set("client", "c1", {"due": 1.0})
        assert backend.store == {}
        assert await cache.get("client", "c1") is None

    async def test_redis_down_falls_back(self):
        cache = BalanceCache(DownRedis(), ttl=60)
        await cache.set("client", "c1", {"due": 1.0})
        await cache.invalidate([BalanceScope("client", "c1")])
        assert await cache.get("client", "c1") is None


@pytest.mark.cache
@pytest.mark.asyncio
class TestFacadeCaching:

    async def test_balance_served_from_cache(self, facade, make_client, make_item):
        backend = InMemoryRedis()
        facade.cache = BalanceCache(backend, ttl=60)
        client = await make_client()
        await make_item(client.id, cost_transport=100.0)

        first = await facade.balance("client", client.id)
        key = balance_key("client", client.id)
        assert json.loads(backend.store[key])["due"] == 100.0

        # a stale entry is returned as-is until invalidated
        backend.store[key] = json.dumps({**first.as_dict(), "due": 1.0})
        assert (await facade.balance("client", client.id)).due == 1.0

    async def test_payment_invalidates_every_scope(
        self, facade, make_client, make_container, make_item
    ):
        backend = InMemoryRedis()
        facade.cache = BalanceCache(backend, ttl=60)
        client = await make_client()
        container = await make_container()
        item = await make_item(client.id, cost_transport=100.0)
        await facade.assign_item(item.id, container.id)

        for kind, entity_id in (
            ("client", client.id), ("cargo_item", item.id), ("container", container.id)
        ):
            await facade.balance(kind, entity_id)
        assert len(backend.store) == 3

        await facade.record_payment(client_id=client.id, cargo_item_id=item.id, amount_paid=40.0)

        assert backend.store == {}
        assert (await facade.balance("container", container.id)).paid == 40.0

    async def test_release_invalidates_container(
        self, facade, make_client, make_container, make_item
    ):
        backend = InMemoryRedis()
        facade.cache = BalanceCache(backend, ttl=60)
        client = await make_client()
        container = await make_container()
        item = await make_item(client.id, cost_transport=100.0)
        await facade.assign_item(item.id, container.id)

        assert (await facade.balance("container", container.id)).due == 100.0
        await facade.unassign_item(item.id)
        assert (await facade.balance("container", container.id)).due == 0.0

    async def test_cancel_invalidates_containers_that_carried_the_item(
        self, facade, make_client, make_container, make_item
    ):
        backend = InMemoryRedis()
        facade.cache = BalanceCache(backend, ttl=60)
        client = await make_client()
        container = await make_container()
        item = await make_item(client.id, cost_transport=100.0)
        await facade.assign_item(item.id, container.id)
        payment = await facade.record_payment(
            client_id=client.id, cargo_item_id=item.id, amount_paid=40.0
        )
        await facade.unassign_item(item.id)

        assert (await facade.balance("container", container.id)).paid == 40.0
        assert balance_key("container", container.id) in backend.store

        await facade.cancel_payment(payment.id)

        assert balance_key("container", container.id) not in backend.store
        assert (await facade.balance("container", container.id)).paid == 0.0

    async def test_read_overlapping_a_commit_is_not_cached(
        self, facade, monkeypatch, make_client, make_item
    ):
        backend = InMemoryRedis()
        facade.cache = BalanceCache(backend, ttl=60)
        client = await make_client()
        item = await make_item(client.id, cost_transport=100.0)
        read = facade._read_balance

        async def read_then_pay(scope):
            outcome = await read(scope)
            await facade.record_payment(
                client_id=client.id, cargo_item_id=item.id, amount_paid=40.0
            )
            return outcome

        monkeypatch.setattr(facade, "_read_balance", read_then_pay)
        stale = await facade.balance("client", client.id)
        monkeypatch.setattr(facade, "_read_balance", read)

        assert stale.paid == 0.0
        assert balance_key("client", client.id) not in backend.store
        assert (await facade.balance("client", client.id)).paid == 40.0
