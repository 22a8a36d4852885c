"""STORYLINE — SDK Composition Root.

One explicit instance per process wires the gate, transport, pending
store, tracker, flusher and registry together:

  track → gate → live send ─ ok ─→ done
                          └ fail ─→ pending store
  READY / flush() → flusher → pending store → live send → settle
  fetch_campaigns → transport → decoder → cache + registry → view layer

No public method raises to the host app.
"""

import asyncio
from typing import Any, Dict, List, Optional

from storyline.campaigns.registry import CampaignRegistry, ScreenCampaignCache
from storyline.config import Configuration, Settings, settings as default_settings
from storyline.connectors.backend.client import HttpTransport
from storyline.connectors.backend.decoder import decode_feed
from storyline.connectors.base_transport import CampaignTransport
from storyline.core.gate import ConfigurationGate, SDKState
from storyline.events.flusher import FlushResult, RetryFlusher
from storyline.events.store import PendingEventStore
from storyline.events.tracker import EventTracker
from storyline.models.campaign_models import Campaign
from storyline.models.event_models import PendingEvent
from storyline.core.logging import get_logger

logger = get_logger("sdk")


class StorylineSDK:
    """Client SDK for in-app campaigns and engagement tracking."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: CampaignTransport | None = None,
        store: PendingEventStore | None = None,
    ):
        self.settings = settings or default_settings
        self.transport = transport or HttpTransport(self.settings)
        self.store = store or PendingEventStore(self.settings)
        self.registry = CampaignRegistry()
        self.cache = ScreenCampaignCache(self.settings.overlay_cache_ttl)

        self.gate = ConfigurationGate(self.transport.authenticate, self.settings)
        self.flusher = RetryFlusher(self.gate, self.transport, self.store)
        self.tracker = EventTracker(
            self.gate,
            self.transport,
            self.store,
            on_custom_event=self.registry.mark_triggered,
            on_delivered=self._after_delivery,
        )
        self.gate.add_ready_listener(self.flusher.flush)

        self.current_screen: Optional[str] = None
        self.user_attributes: Dict[str, Any] = {}

    @property
    def state(self) -> SDKState:
        return self.gate.state

    # ── Lifecycle ──

    def configure(
        self,
        account_id: str,
        app_id: str,
        user_id: str,
        base_url: Optional[str] = None,
    ) -> bool:
        """Supply credentials and start initialization (first call wins)."""
        try:
            config = Configuration(
                account_id=account_id, app_id=app_id, user_id=user_id, base_url=base_url
            )
            return self.gate.configure(config)
        except Exception as e:
            logger.error(f"configure() rejected: {e}")
            return False

    async def initialize(
        self,
        account_id: str,
        app_id: str,
        user_id: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        """Configure and wait for readiness. Returns whether the SDK is ready."""
        self.configure(account_id, app_id, user_id, base_url)
        return await self.gate.wait_for_ready(timeout)

    def reset(self) -> None:
        """Full reinitialization. Pending events stay on disk."""
        self.gate.reset()
        self.transport.reset()
        self.registry.clear()
        self.cache.clear()
        self.current_screen = None
        self.user_attributes = {}
        logger.info("SDK reset to initial state")

    async def shutdown(self) -> None:
        """Finish in-flight deliveries and release the HTTP client."""
        try:
            await self.tracker.drain()
            await self.gate.wait_for_background()
            await self.transport.close()
        except Exception as e:
            logger.error(f"Shutdown incomplete: {e}")
        logger.info("SDK shutdown complete")

    # ── Events ──

    def track(
        self,
        event_type: str,
        campaign_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[asyncio.Task]:
        """Fire-and-forget event tracking."""
        return self.tracker.track(event_type, campaign_id, metadata)

    async def drain(self) -> None:
        await self.tracker.drain()

    async def flush(self) -> FlushResult:
        """Retry pending events now."""
        return await self.flusher.flush()

    async def _after_delivery(self, event: PendingEvent) -> None:
        # Custom events can unlock trigger-gated campaigns
        if not event.is_system_event and self.current_screen:
            logger.debug(f"Refreshing campaigns due to custom event: {event.event_type}")
            await self.fetch_campaigns(self.current_screen)

    # ── Campaigns ──

    def set_user_attributes(self, attributes: Dict[str, Any]) -> None:
        self.user_attributes = dict(attributes)
        logger.debug(f"User attributes updated: {', '.join(attributes)}")

    async def fetch_campaigns(self, screen: str) -> List[Campaign]:
        """Fetch, decode and publish campaigns for ``screen``.

        Falls back to the screen's cached campaigns when the fetch fails,
        and returns an empty list when the SDK is not ready.
        """
        if not await self.gate.wait_for_ready():
            logger.warning(
                "SDK not ready; no campaigns", extra={"screen": screen, "state": self.state.value}
            )
            return []

        if self.current_screen is not None and self.current_screen != screen:
            logger.debug(f"Screen changed from {self.current_screen} to {screen}")
            self.registry.clear_dismissed()
            self.cache.evict_expired()
        self.current_screen = screen

        config = self.gate.config
        try:
            payload = await self.transport.fetch_campaign_feed(
                screen, config.user_id, dict(self.user_attributes)
            )
            campaigns = decode_feed(payload)
            self.cache.store(screen, campaigns)
        except Exception as e:
            logger.error(f"❌ Failed to fetch campaigns: {e}", extra={"screen": screen})
            campaigns = list(self.cache.get(screen, allow_stale=True) or ())

        self.registry.update(campaigns)
        logger.info(
            f"✅ Screen tracked: {screen} - {len(campaigns)} campaigns loaded",
            extra={"screen": screen},
        )
        return campaigns

    def campaigns(self, campaign_type: str, position: Optional[str] = None) -> List[Campaign]:
        return self.registry.visible(campaign_type, position)

    def active_campaign(
        self, campaign_type: str, position: Optional[str] = None
    ) -> Optional[Campaign]:
        return self.registry.active(campaign_type, position)

    def dismiss_campaign(self, campaign_id: str) -> None:
        self.registry.dismiss(campaign_id)

    # ── Debug ──

    def debug_info(self) -> Dict[str, Any]:
        config = self.gate.config
        return {
            "state": self.state.value,
            "user_id": config.user_id if config else None,
            "current_screen": self.current_screen,
            "total_campaigns": len(self.registry.snapshot()),
            "triggered_events": sorted(self.registry.triggered_events),
            "dismissed_campaigns": sorted(self.registry.dismissed_campaigns),
            "in_flight_events": self.tracker.in_flight,
            "flush_running": self.flusher.running,
        }
