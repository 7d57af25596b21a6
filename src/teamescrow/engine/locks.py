"""Per-project mutual exclusion.

Every write to a project's budget-affecting state runs inside
``ProjectLocks.hold(project_id)`` and, within that, a transaction that
re-reads the project with a row lock. The in-process lock serializes
coroutines of this process; the row lock serializes processes sharing a
PostgreSQL database.
"""

from __future__ import annotations

import asyncio
import uuid
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog

logger = structlog.get_logger(__name__)


class ProjectLocks:
    """Registry of asyncio locks keyed by project ID.

    Locks are held weakly so idle projects do not accumulate entries.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock_for(self, project_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(project_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[project_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, project_id: uuid.UUID) -> AsyncIterator[None]:
        """Hold the lock for ``project_id`` for the duration of the block."""
        lock = self.lock_for(project_id)
        if lock.locked():
            logger.debug("project_lock_contended", project_id=str(project_id))
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)
