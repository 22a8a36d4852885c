"""STORYLINE — Pending Event Retry Flusher.

Runs when the gate becomes READY and on demand. One pass tries each
pending event once, in order, then settles the store so that only the
failures remain. There is no timer; the next pass happens on the next
READY transition or explicit flush.
"""

from typing import List

from pydantic import BaseModel

from storyline.connectors.base_transport import CampaignTransport
from storyline.core.gate import ConfigurationGate
from storyline.events.store import PendingEventStore
from storyline.models.event_models import PendingEvent
from storyline.core.logging import get_logger

logger = get_logger("events.flusher")


class FlushResult(BaseModel):
    """Outcome of one flush pass."""

    attempted: int = 0
    delivered: int = 0
    requeued: int = 0
    skipped: bool = False
    reason: str = ""


class RetryFlusher:
    def __init__(
        self,
        gate: ConfigurationGate,
        transport: CampaignTransport,
        store: PendingEventStore,
    ):
        self.gate = gate
        self.transport = transport
        self.store = store
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def flush(self) -> FlushResult:
        """Run one pass. A call made while a pass is running is coalesced."""
        if self._running:
            logger.debug("Flush already in progress; coalescing")
            return FlushResult(skipped=True, reason="in_progress")

        config = self.gate.config
        if not self.gate.is_ready or config is None:
            return FlushResult(skipped=True, reason="not_ready")

        self._running = True
        try:
            pending = await self.store.get_all()
            if not pending:
                return FlushResult()

            logger.info(
                f"Retrying {len(pending)} pending events...",
                extra={"pending_count": len(pending)},
            )
            failed: List[PendingEvent] = []
            for event in pending:
                if not await self.transport.send_event(event, config.user_id):
                    failed.append(event)

            await self.store.settle(len(pending), failed)
            result = FlushResult(
                attempted=len(pending),
                delivered=len(pending) - len(failed),
                requeued=len(failed),
            )
            logger.info(
                f"Pending events retry completed: {result.delivered} delivered, {result.requeued} requeued",
                extra={"pending_count": result.requeued},
            )
            return result
        except Exception:
            logger.exception("Flush pass aborted; pending events left untouched")
            return FlushResult(skipped=True, reason="error")
        finally:
            self._running = False
