"""Post-commit operation events.

The facade publishes one OperationEvent per successful operation, after
the transaction commits.  Each subscriber runs in its own task so a slow
or failing subscriber never blocks or rolls back the operation; failures
are logged and dropped.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable

import redis.asyncio as redis

from fretmarine.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationEvent:
    # item_assigned | item_unassigned | container_closed | container_reopened |
    # container_advanced | capacity_recomputed | payment_recorded | payment_cancelled
    kind: str
    entity_ids: dict[str, str | None]
    snapshot: dict
    occurred_at: datetime = field(default_factory=datetime.utcnow)

    def as_dict(self) -> dict:
        return {
            "kind": self.kind,
            "entity_ids": self.entity_ids,
            "snapshot": self.snapshot,
            "occurred_at": self.occurred_at.isoformat(),
        }


Subscriber = Callable[[OperationEvent], Awaitable[None]]


class EventBus:
    """Fire-and-forget fan-out of OperationEvents to async subscribers."""

    def __init__(self, subscribers: list[Subscriber] | None = None):
        self._subscribers: list[Subscriber] = list(subscribers or [])
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def publish(self, event: OperationEvent) -> None:
        """Schedule delivery and return immediately."""
        for subscriber in self._subscribers:
            task = asyncio.create_task(self._deliver(subscriber, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _deliver(self, subscriber: Subscriber, event: OperationEvent) -> None:
        try:
            await subscriber(event)
        except Exception:
            logger.warning(
                f"Event subscriber {getattr(subscriber, '__name__', subscriber)!r} "
                f"failed on {event.kind}",
                exc_info=True,
            )

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def redis_publisher(client: redis.Redis, channel: str | None = None) -> Subscriber:
    """Subscriber that publishes each event as JSON on a Redis channel."""
    channel = channel or settings.events_channel

    async def publish_to_redis(event: OperationEvent) -> None:
        try:
            await client.publish(channel, json.dumps(event.as_dict(), default=str))
        except redis.RedisError as e:
            logger.warning(f"Failed to publish {event.kind} to {channel}: {e}")

    return publish_to_redis
