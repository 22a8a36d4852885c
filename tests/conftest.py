"""Shared pytest fixtures."""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from storyline.config import Configuration, Settings
from storyline.connectors.base_transport import CampaignTransport
from storyline.events.store import PendingEventStore
from storyline.models.event_models import PendingEvent


class FakeTransport(CampaignTransport):
    """Scriptable in-memory backend."""

    def __init__(self):
        self.online = True
        self.fail_event_types: set = set()
        self.auth_error: Optional[Exception] = None
        self.auth_gate: Optional[asyncio.Event] = None
        self.send_gate: Optional[asyncio.Event] = None
        self.send_started = asyncio.Event()
        self.feed: Any = {"campaigns": []}
        self.feed_error: Optional[Exception] = None

        self.auth_calls: List[Configuration] = []
        self.attempts: List[PendingEvent] = []
        self.sent: List[PendingEvent] = []
        self.feed_calls: List[Dict[str, Any]] = []
        self.closed = False
        self.reset_calls = 0

    async def authenticate(self, config: Configuration) -> None:
        self.auth_calls.append(config)
        if self.auth_gate is not None:
            await self.auth_gate.wait()
        if self.auth_error is not None:
            raise self.auth_error

    async def send_event(self, event: PendingEvent, user_id: str) -> bool:
        self.attempts.append(event)
        self.send_started.set()
        if self.send_gate is not None:
            await self.send_gate.wait()
        if not self.online or event.event_type in self.fail_event_types:
            return False
        self.sent.append(event)
        return True

    async def fetch_campaign_feed(self, screen, user_id, attributes=None):
        self.feed_calls.append(
            {"screen": screen, "user_id": user_id, "attributes": attributes}
        )
        if self.feed_error is not None:
            raise self.feed_error
        return self.feed

    def reset(self) -> None:
        self.reset_calls += 1

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def test_settings(tmp_path):
    """Settings with a throwaway SQLite store and short gate timeouts."""
    return Settings(
        store_database_url=f"sqlite:///{tmp_path / 'storyline.db'}",
        ready_timeout=0.2,
        ready_poll_interval=0.01,
        retry_base_delay=0,
        max_retries=2,
    )


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def store(test_settings):
    return PendingEventStore(test_settings)


@pytest.fixture
def sample_config():
    return Configuration(account_id="acc-1", app_id="app-1", user_id="user-1")


@pytest.fixture
def banner_details():
    return {
        "id": "ban-details-1",
        "image": "https://cdn.example.com/banner.png",
        "width": 320,
        "height": 100,
        "link": "https://example.com/offer",
        "styling": {"marginBottom": "12", "enableCloseButton": True},
    }


@pytest.fixture
def banner_campaign(banner_details):
    return {
        "id": "camp_ban",
        "campaign_type": "BAN",
        "client_id": "client-1",
        "details": banner_details,
    }


@pytest.fixture
def widget_campaign():
    return {
        "id": "camp_wid",
        "campaign_type": "WID",
        "client_id": "client-1",
        "position": "widget_home_top",
        "details": {
            "id": "wid-details-1",
            "type": "full",
            "width": 360,
            "height": 180,
            "widget_images": [
                {"id": "img-1", "image": "https://cdn.example.com/w1.png", "order": 1}
            ],
        },
    }
