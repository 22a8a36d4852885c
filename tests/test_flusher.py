"""Tests for the retry flusher."""

import asyncio

import pytest

from storyline.core.gate import ConfigurationGate
from storyline.events.flusher import RetryFlusher
from storyline.events.tracker import EventTracker
from storyline.models.event_models import PendingEvent


@pytest.fixture
def gate(fake_transport, test_settings):
    return ConfigurationGate(fake_transport.authenticate, test_settings)


@pytest.fixture
def flusher(gate, fake_transport, store):
    return RetryFlusher(gate, fake_transport, store)


async def _ready(gate, config):
    gate.configure(config)
    assert await gate.wait_for_ready()


class TestFlushPass:
    @pytest.mark.asyncio
    async def test_one_success_one_failure_keeps_failure(self, flusher, gate, sample_config, fake_transport, store):
        ok = PendingEvent(campaign_id="camp_1", event_type="viewed")
        bad = PendingEvent(campaign_id="camp_2", event_type="clicked")
        await store.save(ok)
        await store.save(bad)
        await _ready(gate, sample_config)
        fake_transport.fail_event_types = {"clicked"}

        result = await flusher.flush()

        assert (result.attempted, result.delivered, result.requeued) == (2, 1, 1)
        assert fake_transport.sent == [ok]
        assert await store.get_all() == [bad]

    @pytest.mark.asyncio
    async def test_full_success_clears_store(self, flusher, gate, sample_config, fake_transport, store):
        events = [PendingEvent(campaign_id=f"c{i}", event_type="viewed") for i in range(3)]
        for event in events:
            await store.save(event)
        await _ready(gate, sample_config)

        result = await flusher.flush()

        assert result.delivered == 3
        assert fake_transport.sent == events
        assert await store.get_all() == []

    @pytest.mark.asyncio
    async def test_each_event_tried_once_per_pass(self, flusher, gate, sample_config, fake_transport, store):
        await store.save(PendingEvent(event_type="viewed"))
        await _ready(gate, sample_config)
        fake_transport.online = False

        await flusher.flush()

        assert len(fake_transport.attempts) == 1
        assert len(await store.get_all()) == 1

    @pytest.mark.asyncio
    async def test_empty_store(self, flusher, gate, sample_config, fake_transport):
        await _ready(gate, sample_config)

        result = await flusher.flush()

        assert result.attempted == 0
        assert fake_transport.attempts == []

    @pytest.mark.asyncio
    async def test_skipped_when_not_ready(self, flusher, fake_transport, store):
        await store.save(PendingEvent(event_type="viewed"))

        result = await flusher.flush()

        assert result.skipped is True
        assert result.reason == "not_ready"
        assert fake_transport.attempts == []
        assert len(await store.get_all()) == 1


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_flush_is_coalesced(self, flusher, gate, sample_config, fake_transport, store):
        await store.save(PendingEvent(event_type="viewed"))
        await _ready(gate, sample_config)
        fake_transport.send_gate = asyncio.Event()

        first = asyncio.create_task(flusher.flush())
        await fake_transport.send_started.wait()
        second = await flusher.flush()
        fake_transport.send_gate.set()
        first_result = await first

        assert second.skipped is True
        assert second.reason == "in_progress"
        assert first_result.delivered == 1
        assert len(fake_transport.attempts) == 1

    @pytest.mark.asyncio
    async def test_event_saved_mid_pass_survives(self, flusher, gate, sample_config, fake_transport, store):
        old = PendingEvent(campaign_id="old", event_type="viewed")
        new = PendingEvent(campaign_id="new", event_type="viewed")
        await store.save(old)
        await _ready(gate, sample_config)
        fake_transport.online = False
        fake_transport.send_gate = asyncio.Event()

        running = asyncio.create_task(flusher.flush())
        await fake_transport.send_started.wait()
        await store.save(new)
        fake_transport.send_gate.set()
        await running

        assert await store.get_all() == [old, new]


class TestOfflineRecovery:
    @pytest.mark.asyncio
    async def test_offline_events_delivered_once_after_reconnect(self, gate, sample_config, fake_transport, store):
        tracker = EventTracker(gate, fake_transport, store)
        flusher = RetryFlusher(gate, fake_transport, store)
        await _ready(gate, sample_config)
        fake_transport.online = False

        for name in ("a", "b", "c", "d"):
            tracker.track(name, "camp_1")
        await tracker.drain()
        assert len(await store.get_all()) == 4

        fake_transport.online = True
        fake_transport.fail_event_types = {"c"}
        await flusher.flush()

        assert sorted(e.event_type for e in fake_transport.sent) == ["a", "b", "d"]
        assert [e.event_type for e in await store.get_all()] == ["c"]

        fake_transport.fail_event_types = set()
        await flusher.flush()
        assert sorted(e.event_type for e in fake_transport.sent) == ["a", "b", "c", "d"]
        assert await store.get_all() == []
