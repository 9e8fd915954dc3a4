"""Per-container serialization: one asyncio.Lock per container id.

Mutations of the same container run one at a time inside this process;
mutations of different containers proceed in parallel.  Cross-process
safety comes from ``SELECT … FOR UPDATE`` on the container row and the
``version`` column, so this registry only removes in-process contention.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field


@dataclass
class _Entry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    waiters: int = 0


class ContainerLockRegistry:
    """Keyed lock registry.  Entries are dropped once nobody holds or waits."""

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def is_locked(self, container_id: str) -> bool:
        entry = self._entries.get(container_id)
        return entry is not None and entry.lock.locked()

    @asynccontextmanager
    async def hold(self, container_id: str):
        entry = self._entries.get(container_id)
        if entry is None:
            entry = self._entries[container_id] = _Entry()
        entry.waiters += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.waiters -= 1
            if entry.waiters == 0:
                self._entries.pop(container_id, None)
