"""STORYLINE — Tracking Event Models."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

# Events that are only delivered; anything else also counts as a trigger.
SYSTEM_EVENTS = frozenset(
    {
        "viewed",
        "clicked",
        "dismissed",
        "expanded",
        "minimized",
        "completed",
        "closed",
        "submitted",
        "story_completed",
        "story_dismissed",
        "story_opened",
        "slide_viewed",
    }
)


class PendingEvent(BaseModel):
    """A tracking event, immutable once created.

    Identity is structural; ordering comes only from position in the
    pending log.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    campaign_id: Optional[str] = Field(default=None, alias="campaignId")
    event_type: str = Field(alias="eventType")
    metadata: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_system_event(self) -> bool:
        return self.event_type in SYSTEM_EVENTS

    def to_wire(self) -> Dict[str, Any]:
        """JSON body shape expected by the events endpoint."""
        return self.model_dump(mode="json", by_alias=True)


PENDING_EVENT_LIST = TypeAdapter(List[PendingEvent])
