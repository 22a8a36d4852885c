"""STORYLINE — Abstract Backend Transport."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from storyline.config import Configuration
from storyline.models.event_models import PendingEvent


class CampaignTransport(ABC):
    """Everything the SDK core needs from the network.

    Implementations own credentials obtained during ``authenticate``.
    """

    @abstractmethod
    async def authenticate(self, config: Configuration) -> None:
        """Perform the initialization handshake. Raises on failure."""
        ...

    @abstractmethod
    async def send_event(self, event: PendingEvent, user_id: str) -> bool:
        """Make one delivery attempt. True only on a 2xx response.

        Must not raise.
        """
        ...

    @abstractmethod
    async def fetch_campaign_feed(
        self, screen: str, user_id: str, attributes: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Return the raw campaign feed payload. Raises on failure."""
        ...

    def reset(self) -> None:
        """Forget credentials from a previous configuration."""

    async def close(self) -> None:
        """Release network resources."""
