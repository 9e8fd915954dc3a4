"""Shared router dependencies: the reconciliation facade."""

from fastapi import Request

from fretmarine.database import async_session
from fretmarine.services.events import EventBus, redis_publisher
from fretmarine.services.facade import ReconciliationFacade
from fretmarine.utils.cache import BalanceCache, get_redis


async def build_facade() -> ReconciliationFacade:
    """Facade wired to the app engine, the Redis balance cache and Redis events."""
    client = await get_redis()
    return ReconciliationFacade(
        async_session,
        cache=BalanceCache(client),
        events=EventBus([redis_publisher(client)]),
    )


async def get_facade(request: Request) -> ReconciliationFacade:
    return request.app.state.facade
