"""EngineRunner — serializes engine calls and journals their events.

All mutating calls go through one asyncio.Lock: the engine is a single
logical writer. The journal insert runs while the outermost ledger
transaction is still open, so a journal failure rolls the in-memory
mutation back too.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from src.perp_engine.engine import PerpEngine
from src.perp_ledger.infrastructure.journal import write_events

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EngineRunner:
    def __init__(self, engine: PerpEngine) -> None:
        self.engine = engine
        self._lock = asyncio.Lock()

    async def read(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        async with self._lock:
            return fn(*args, **kwargs)

    async def execute(
        self, db: AsyncSession | None, fn: Callable[..., T], *args: Any, **kwargs: Any
    ) -> T:
        """Run a mutating engine call; journal its events to `db` when given."""
        ledger = self.engine.ledger
        async with self._lock:
            with ledger.transaction():
                result = fn(*args, **kwargs)
                if db is not None:
                    try:
                        written = await write_events(ledger.pending_events, db)
                        await db.commit()
                    except BaseException:
                        await db.rollback()
                        logger.exception("Journal write failed, rolling back engine call")
                        raise
                    logger.debug("Journaled %d events", written)
            return result
