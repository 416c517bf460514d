"""DB helpers for the perp_events journal.

Called from EngineRunner while the outermost ledger transaction is still
open, so a failed insert rolls the in-memory mutation back as well.
"""
import json

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.perp_ledger.domain.models import Event

_INSERT_EVENT_SQL = text("""
    INSERT INTO perp_events (market_id, account_id, event_type, event_time, payload)
    VALUES (:market_id, :account_id, :event_type, :event_time, :payload)
""")


async def write_event(event: Event, db: AsyncSession) -> None:
    """Insert one row into perp_events within the caller's transaction.

    Fixed-point ints are serialized as JSON numbers; Postgres JSONB keeps
    them as arbitrary-precision numerics.
    """
    await db.execute(
        _INSERT_EVENT_SQL,
        {
            "market_id": event.market_id,
            "account_id": event.account_id,
            "event_type": event.event_type,
            "event_time": event.timestamp,
            "payload": json.dumps(event.payload, default=str),
        },
    )


async def write_events(events: list[Event], db: AsyncSession) -> int:
    """Insert a batch of events in order. Returns the number written."""
    for event in events:
        await write_event(event, db)
    return len(events)
