"""STORYLINE — Pending Event Store.

Durable log of events that could not be delivered. The whole list is kept
as one JSON blob under a fixed key and every change is read-all/write-all,
so all operations run inside one lock.

Durability boundary: there is no journal. A crash mid-write can lose the
whole queue, but never leaves a half-written list behind.
"""

import asyncio
from datetime import datetime, timezone
from typing import List, Sequence

from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from storyline.config import Settings, settings as default_settings
from storyline.database import check_connection, create_store_engine, init_db
from storyline.models.event_models import PENDING_EVENT_LIST, PendingEvent
from storyline.models.store_models import KeyValueBlob
from storyline.core.logging import get_logger

logger = get_logger("events.store")


class PendingEventStore:
    """Serialized access to the persisted pending-event list."""

    def __init__(self, settings: Settings | None = None, engine: Engine | None = None):
        self.settings = settings or default_settings
        self.key = self.settings.pending_events_key
        self.engine = engine or create_store_engine(self.settings.effective_store_url)
        self._lock = asyncio.Lock()
        try:
            init_db(self.engine)
        except SQLAlchemyError as e:
            logger.error(f"❌ Pending event store unavailable: {e}")
        else:
            check_connection(self.engine)

    # ── Blob I/O (worker thread) ──

    def _read(self) -> List[PendingEvent]:
        """Read the list; any failure reads as empty."""
        try:
            with Session(self.engine) as session:
                blob = session.get(KeyValueBlob, self.key)
            if blob is None:
                return []
            return PENDING_EVENT_LIST.validate_json(blob.value)
        except (SQLAlchemyError, ValidationError, ValueError) as e:
            logger.error(f"Pending events unreadable, treating as empty: {e}")
            return []

    def _write(self, events: Sequence[PendingEvent]) -> bool:
        try:
            payload = PENDING_EVENT_LIST.dump_json(list(events), by_alias=True).decode()
            with Session(self.engine) as session:
                blob = session.get(KeyValueBlob, self.key)
                if blob is None:
                    blob = KeyValueBlob(key=self.key, value=payload)
                else:
                    blob.value = payload
                    blob.updated_at = datetime.now(timezone.utc)
                session.add(blob)
                session.commit()
            return True
        except (SQLAlchemyError, ValueError) as e:
            logger.error(f"Pending events write failed: {e}")
            return False

    def _delete(self) -> None:
        try:
            with Session(self.engine) as session:
                blob = session.get(KeyValueBlob, self.key)
                if blob is not None:
                    session.delete(blob)
                    session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Pending events clear failed: {e}")

    # ── Public API ──

    async def save(self, event: PendingEvent) -> None:
        """Append one event (read, append, write back)."""
        async with self._lock:
            events = await asyncio.to_thread(self._read)
            events.append(event)
            if await asyncio.to_thread(self._write, events):
                logger.info(
                    f"💾 Event saved for retry: {event.event_type}",
                    extra={
                        "event_type": event.event_type,
                        "campaign_id": event.campaign_id,
                        "pending_count": len(events),
                    },
                )
            else:
                logger.warning(
                    "Event lost: could not persist",
                    extra={"event_type": event.event_type},
                )

    async def get_all(self) -> List[PendingEvent]:
        """Return pending events in insertion order."""
        async with self._lock:
            return await asyncio.to_thread(self._read)

    async def clear(self) -> None:
        async with self._lock:
            await asyncio.to_thread(self._delete)
            logger.info("🗑️ Pending events cleared")

    async def settle(self, drained: int, failed: Sequence[PendingEvent]) -> int:
        """Finish a flush pass over the first ``drained`` events.

        The drained prefix is replaced by ``failed``; events saved while the
        pass was running stay behind it. Returns the remaining count.
        """
        async with self._lock:
            current = await asyncio.to_thread(self._read)
            remaining = list(failed) + current[drained:]
            if not remaining:
                await asyncio.to_thread(self._delete)
                logger.info("🗑️ Pending events cleared")
                return 0
            await asyncio.to_thread(self._write, remaining)
            logger.info(
                f"{len(remaining)} pending events kept for next flush",
                extra={"pending_count": len(remaining)},
            )
            return len(remaining)
