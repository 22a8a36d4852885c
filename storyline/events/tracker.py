"""STORYLINE — Event Tracker.

Fire-and-forget entry point for engagement events. Each ``track`` call
schedules one delivery task: wait for the gate, try one live send, and on
failure hand the event to the pending store. Nothing is raised to the
caller.

Ordering: tasks start in call order, but an event that succeeds live can
reach the backend before an earlier one that was queued.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from storyline.connectors.base_transport import CampaignTransport
from storyline.core.gate import ConfigurationGate, SDKState
from storyline.events.store import PendingEventStore
from storyline.models.event_models import PendingEvent
from storyline.core.logging import get_logger

logger = get_logger("events.tracker")

EventHook = Callable[[PendingEvent], Awaitable[object]]


class EventTracker:
    def __init__(
        self,
        gate: ConfigurationGate,
        transport: CampaignTransport,
        store: PendingEventStore,
        on_custom_event: Optional[Callable[[str], None]] = None,
        on_delivered: Optional[EventHook] = None,
    ):
        self.gate = gate
        self.transport = transport
        self.store = store
        self._on_custom_event = on_custom_event
        self._on_delivered = on_delivered
        self._tasks: Set[asyncio.Task] = set()

    def track(
        self,
        event_type: str,
        campaign_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[asyncio.Task]:
        """Schedule delivery of one event and return immediately.

        Returns the delivery task, or None when the event could not even
        be scheduled.
        """
        try:
            event = PendingEvent(
                campaign_id=campaign_id or None,
                event_type=event_type,
                metadata=metadata or {},
            )
        except ValueError as e:
            logger.warning(f"Dropping malformed event {event_type!r}: {e}")
            return None

        if not event.is_system_event and self._on_custom_event:
            self._on_custom_event(event.event_type)

        try:
            task = asyncio.get_running_loop().create_task(self._deliver(event))
        except RuntimeError:
            logger.error(
                "track() needs a running event loop; event dropped",
                extra={"event_type": event_type},
            )
            return None
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(self, event: PendingEvent) -> None:
        extra = {"event_type": event.event_type, "campaign_id": event.campaign_id}
        try:
            await self.gate.wait_for_ready()

            config = self.gate.config
            if self.gate.state is SDKState.UNCONFIGURED or config is None:
                # Nothing to attribute the event to yet
                logger.warning("⚠️ SDK not configured, event dropped", extra=extra)
                return

            if self.gate.is_ready and await self.transport.send_event(event, config.user_id):
                logger.debug(f"Event tracked: {event.event_type}", extra=extra)
                if self._on_delivered:
                    await self._on_delivered(event)
                return

            await self.store.save(event)
        except Exception:
            logger.exception("Unexpected error while tracking event", extra=extra)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
