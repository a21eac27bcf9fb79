"""Per-tenant serialisation of entity resolution."""

from __future__ import annotations

import asyncio
import weakref
from uuid import UUID


class TenantLockRegistry:
    """Hands out one ``asyncio.Lock`` per universe.

    Resolvers sharing a registry never run the check-then-create sequence
    for the same universe at the same time, so two callers cannot both mint
    an entity for one surface form. Locks are bound to the event loop that
    first awaits them; use one registry per loop.
    """

    def __init__(self) -> None:
        self._locks: dict[UUID, asyncio.Lock] = {}

    def lock_for(self, universe_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(universe_id)
        if lock is None:
            lock = self._locks[universe_id] = asyncio.Lock()
        return lock

    def __len__(self) -> int:
        return len(self._locks)


_default_registries: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, TenantLockRegistry] = (
    weakref.WeakKeyDictionary()
)


def default_lock_registry() -> TenantLockRegistry:
    """Registry shared by every resolver on the running event loop."""
    loop = asyncio.get_running_loop()
    registry = _default_registries.get(loop)
    if registry is None:
        registry = _default_registries[loop] = TenantLockRegistry()
    return registry
