"""STORYLINE — Campaign Registry.

Holds the latest campaign snapshot for the view layer. Snapshots are
tuples replaced wholesale, so a reader never sees a partial update.
Session visibility (dismissed campaigns, trigger events) is applied on
read and never changes the snapshot itself.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from storyline.connectors.backend.decoder import INLINE_TYPES
from storyline.models.campaign_models import Campaign
from storyline.core.logging import get_logger

logger = get_logger("campaigns.registry")

CampaignPredicate = Callable[[Campaign], bool]


def position_matches(campaign: Campaign, position: str) -> bool:
    """Widgets are tagged either ``p`` or ``widget_p`` by the backend."""
    if not campaign.position:
        return False
    return campaign.position in (position, f"widget_{position}")


class CampaignRegistry:
    def __init__(self):
        self._snapshot: Tuple[Campaign, ...] = ()
        self._dismissed: Set[str] = set()
        self._triggered: Set[str] = set()

    # ── Snapshot ──

    def update(self, campaigns: Iterable[Campaign]) -> None:
        """Replace the snapshot. Latest fetch always wins."""
        self._snapshot = tuple(campaigns)
        logger.debug(f"Registry holds {len(self._snapshot)} campaigns")

    def snapshot(self) -> Tuple[Campaign, ...]:
        return self._snapshot

    def query(self, predicate: CampaignPredicate) -> List[Campaign]:
        """All campaigns in the snapshot matching ``predicate``."""
        snapshot = self._snapshot
        return [c for c in snapshot if predicate(c)]

    # ── Session Visibility ──

    def is_visible(self, campaign: Campaign) -> bool:
        if campaign.id in self._dismissed:
            return False
        if campaign.trigger_event:
            return campaign.trigger_event in self._triggered
        return True

    def visible(self, campaign_type: str, position: Optional[str] = None) -> List[Campaign]:
        """Visible campaigns of one type, optionally at one position."""

        def wanted(c: Campaign) -> bool:
            if c.campaign_type != campaign_type or not self.is_visible(c):
                return False
            return position is None or position_matches(c, position)

        return self.query(wanted)

    def active(self, campaign_type: str, position: Optional[str] = None) -> Optional[Campaign]:
        """First visible campaign of a type, or None."""
        matches = self.visible(campaign_type, position)
        return matches[0] if matches else None

    def dismiss(self, campaign_id: str) -> None:
        self._dismissed.add(campaign_id)
        logger.info(
            f"🚫 Campaign {campaign_id} dismissed for this screen",
            extra={"campaign_id": campaign_id},
        )

    def is_dismissed(self, campaign_id: str) -> bool:
        return campaign_id in self._dismissed

    def clear_dismissed(self) -> None:
        self._dismissed.clear()

    def mark_triggered(self, event_type: str) -> None:
        self._triggered.add(event_type)
        logger.debug(f"Trigger event recorded: {event_type}", extra={"event_type": event_type})

    @property
    def triggered_events(self) -> frozenset:
        return frozenset(self._triggered)

    @property
    def dismissed_campaigns(self) -> frozenset:
        return frozenset(self._dismissed)

    def clear(self) -> None:
        self._snapshot = ()
        self._dismissed.clear()
        self._triggered.clear()


# ─────────────────────────────────────────────
# PER-SCREEN CACHE
# ─────────────────────────────────────────────


@dataclass
class ScreenCampaigns:
    screen: str
    campaigns: Tuple[Campaign, ...]
    fetched_at: float = field(default_factory=time.monotonic)


class ScreenCampaignCache:
    """Last decoded feed per screen, served when a fetch fails.

    Screens with inline campaigns stay valid until cleared; overlay-only
    screens expire after ``overlay_ttl`` seconds.
    """

    def __init__(self, overlay_ttl: float, clock: Callable[[], float] = time.monotonic):
        self.overlay_ttl = overlay_ttl
        self._clock = clock
        self._screens: Dict[str, ScreenCampaigns] = {}

    def store(self, screen: str, campaigns: Iterable[Campaign]) -> None:
        self._screens[screen] = ScreenCampaigns(
            screen=screen, campaigns=tuple(campaigns), fetched_at=self._clock()
        )

    def is_valid(self, entry: ScreenCampaigns) -> bool:
        if not entry.campaigns:
            return False
        if any(c.campaign_type in INLINE_TYPES for c in entry.campaigns):
            return True
        return self._clock() - entry.fetched_at < self.overlay_ttl

    def get(self, screen: str, allow_stale: bool = False) -> Optional[Tuple[Campaign, ...]]:
        entry = self._screens.get(screen)
        if entry is None:
            return None
        if not self.is_valid(entry):
            if not allow_stale:
                logger.debug(f"⏰ Cache expired for {screen}", extra={"screen": screen})
                return None
            logger.debug(f"📦 Serving stale cache for {screen}", extra={"screen": screen})
        return entry.campaigns

    def evict_expired(self) -> int:
        expired = [s for s, entry in self._screens.items() if not self.is_valid(entry)]
        for screen in expired:
            del self._screens[screen]
        if expired:
            logger.debug(f"🧹 Cleaned up {len(expired)} expired screens")
        return len(expired)

    def clear(self) -> None:
        self._screens.clear()
