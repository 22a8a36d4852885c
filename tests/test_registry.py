"""Tests for the campaign registry and per-screen cache."""

import pytest

from storyline.campaigns.registry import CampaignRegistry, ScreenCampaignCache
from storyline.connectors.backend.decoder import decode_campaign


@pytest.fixture
def banner(banner_campaign):
    return decode_campaign(banner_campaign)


@pytest.fixture
def widget(widget_campaign):
    return decode_campaign(widget_campaign)


@pytest.fixture
def gated_banner(banner_campaign):
    return decode_campaign(dict(banner_campaign, id="camp_gated", trigger_event="Signup"))


class TestSnapshot:
    def test_update_replaces_wholesale(self, banner, widget):
        registry = CampaignRegistry()
        registry.update([banner, widget])
        registry.update([widget])

        assert registry.snapshot() == (widget,)

    def test_old_snapshot_is_untouched_by_update(self, banner, widget):
        registry = CampaignRegistry()
        registry.update([banner])
        before = registry.snapshot()

        registry.update([widget])

        assert before == (banner,)

    def test_query(self, banner, widget):
        registry = CampaignRegistry()
        registry.update([banner, widget])

        assert registry.query(lambda c: c.campaign_type == "WID") == [widget]
        assert registry.query(lambda c: False) == []

    def test_empty_registry(self):
        registry = CampaignRegistry()
        assert registry.active("BAN") is None
        assert registry.visible("WID", "home_top") == []


class TestVisibility:
    def test_active_by_type(self, banner, widget):
        registry = CampaignRegistry()
        registry.update([widget, banner])

        assert registry.active("BAN") == banner

    def test_widget_position_with_or_without_prefix(self, widget):
        registry = CampaignRegistry()
        registry.update([widget])

        assert registry.active("WID", "home_top") == widget
        assert registry.active("WID", "widget_home_top") == widget
        assert registry.active("WID", "footer") is None

    def test_trigger_gated_until_event_tracked(self, gated_banner):
        registry = CampaignRegistry()
        registry.update([gated_banner])
        assert registry.active("BAN") is None

        registry.mark_triggered("Signup")

        assert registry.active("BAN") == gated_banner

    def test_dismissed_campaign_hidden(self, banner):
        registry = CampaignRegistry()
        registry.update([banner])

        registry.dismiss(banner.id)

        assert registry.is_dismissed(banner.id)
        assert registry.active("BAN") is None
        assert registry.snapshot() == (banner,)

        registry.clear_dismissed()
        assert registry.active("BAN") == banner

    def test_clear(self, banner):
        registry = CampaignRegistry()
        registry.update([banner])
        registry.mark_triggered("Signup")
        registry.dismiss(banner.id)

        registry.clear()

        assert registry.snapshot() == ()
        assert registry.triggered_events == frozenset()
        assert registry.dismissed_campaigns == frozenset()


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestScreenCache:
    def test_overlay_screen_expires(self, banner):
        clock = FakeClock()
        cache = ScreenCampaignCache(overlay_ttl=60, clock=clock)
        cache.store("home", [banner])

        assert cache.get("home") == (banner,)
        clock.now += 61
        assert cache.get("home") is None
        assert cache.get("home", allow_stale=True) == (banner,)

    def test_inline_screen_never_expires(self, banner, widget):
        clock = FakeClock()
        cache = ScreenCampaignCache(overlay_ttl=60, clock=clock)
        cache.store("home", [banner, widget])

        clock.now += 10_000
        assert cache.get("home") == (banner, widget)

    def test_evict_expired(self, banner, widget):
        clock = FakeClock()
        cache = ScreenCampaignCache(overlay_ttl=60, clock=clock)
        cache.store("overlay", [banner])
        cache.store("inline", [widget])
        clock.now += 61

        assert cache.evict_expired() == 1
        assert cache.get("overlay", allow_stale=True) is None
        assert cache.get("inline") == (widget,)

    def test_unknown_screen(self):
        cache = ScreenCampaignCache(overlay_ttl=60)
        assert cache.get("nowhere", allow_stale=True) is None
