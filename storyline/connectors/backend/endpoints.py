"""STORYLINE — Backend Endpoints.

URL and body builders for each backend call.
"""

from typing import Any, Dict, Optional

from storyline.config import Configuration, Settings
from storyline.models.event_models import PendingEvent


class BackendEndpoints:
    """Resolve backend URLs for one configuration."""

    def __init__(self, settings: Settings, config: Configuration):
        self.base = config.resolved_base_url(settings)
        self.settings = settings

    @property
    def auth_url(self) -> str:
        return f"{self.base}{self.settings.auth_path}"

    @property
    def campaigns_url(self) -> str:
        return f"{self.base}{self.settings.campaigns_path}"

    @property
    def events_url(self) -> str:
        return f"{self.base}{self.settings.events_path}"


def auth_body(config: Configuration) -> Dict[str, Any]:
    return {"account_id": config.account_id, "app_id": config.app_id}


def event_body(event: PendingEvent, user_id: str) -> Dict[str, Any]:
    body = event.to_wire()
    body["user_id"] = user_id
    return body


def track_screen_body(
    screen: str, user_id: str, attributes: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "screenName": screen,
        "attributes": attributes or {},
    }
