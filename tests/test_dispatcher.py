"""
DebounceRegistry and AlertDispatcher tests.
"""

import threading
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from voyagewatch_alerts.dispatcher import (
    DEMO_ALERTS,
    NEW_ALERT_EVENT,
    AlertDispatcher,
    DebounceRegistry,
)
from voyagewatch_alerts.rules import AlertRuleEngine
from voyagewatch_common.errors import PersistenceError, PushError

from conftest import make_weather


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def debounce(clock):
    return DebounceRegistry(clock=clock)


@pytest.fixture
def dispatcher(alert_store, push_channel, debounce):
    return AlertDispatcher(alert_store, push_channel, debounce=debounce, demo_mode=False)


def _triggered(**weather):
    return AlertRuleEngine().evaluate(make_weather(**weather))


# =============================================================================
# DEBOUNCE
# =============================================================================

class TestDebounceRegistry:

    def test_no_window_always_sends(self, debounce):
        assert all(debounce.should_send("gale_force_winds") for _ in range(5))

    def test_first_send_allowed_then_suppressed(self, debounce, clock):
        assert debounce.should_send("hurricane_force_winds", 30)
        clock.now += 29 * 60
        assert not debounce.should_send("hurricane_force_winds", 30)

    def test_window_boundary_is_inclusive(self, debounce, clock):
        assert debounce.should_send("hurricane_force_winds", 30)
        clock.now += 30 * 60
        assert debounce.should_send("hurricane_force_winds", 30)

    def test_suppressed_send_does_not_extend_window(self, debounce, clock):
        debounce.should_send("cyclone_threat", 60)
        clock.now += 50 * 60
        assert not debounce.should_send("cyclone_threat", 60)
        clock.now += 10 * 60
        assert debounce.should_send("cyclone_threat", 60)

    def test_types_are_independent(self, debounce):
        assert debounce.should_send("hurricane_force_winds", 30)
        assert debounce.should_send("zero_visibility", 30)

    def test_concurrent_callers_send_once(self, debounce):
        results = []
        barrier = threading.Barrier(16)

        def worker():
            barrier.wait()
            results.append(debounce.should_send("violent_storm", 45))

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results.count(True) == 1

    def test_reset(self, debounce):
        debounce.should_send("violent_storm", 45)
        debounce.reset()
        assert debounce.should_send("violent_storm", 45)


# =============================================================================
# DISPATCH
# =============================================================================

class TestDispatch:

    @pytest.mark.asyncio
    async def test_persists_and_pushes(self, dispatcher, alert_store, push_channel):
        weather = make_weather(wind_speed=70.0)
        alerts = await dispatcher.dispatch(_triggered(wind_speed=70.0), "voy-1", "cap-1", weather)

        assert [a.alert_type for a in alerts] == ["hurricane_force_winds", "heavy_seas"]
        assert len(alert_store.alerts) == 2
        assert push_channel.emit.await_count == 2

        recipient, event, payload = push_channel.emit.await_args_list[0].args
        assert recipient == "cap-1"
        assert event == NEW_ALERT_EVENT
        assert payload["alertType"] == "hurricane_force_winds"
        assert payload["weatherData"] == {
            "temperature":   18.0,
            "windSpeed":     70.0,
            "pressure":      1015.0,
            "visibility":    10000.0,
            "precipitation": 0.0,
        }

    @pytest.mark.asyncio
    async def test_debounced_rule_is_skipped(self, dispatcher):
        first = await dispatcher.dispatch(_triggered(wind_speed=70.0), "voy-1", "cap-1")
        second = await dispatcher.dispatch(_triggered(wind_speed=70.0), "voy-1", "cap-1")

        assert "hurricane_force_winds" in [a.alert_type for a in first]
        assert [a.alert_type for a in second] == ["heavy_seas"]

    @pytest.mark.asyncio
    async def test_debounce_is_shared_across_vessels(self, dispatcher):
        await dispatcher.dispatch(_triggered(wind_speed=70.0), "voy-1", "cap-1")
        other = await dispatcher.dispatch(_triggered(wind_speed=70.0), "voy-2", "cap-2")
        assert "hurricane_force_winds" not in [a.alert_type for a in other]

    @pytest.mark.asyncio
    async def test_persistence_failure_still_pushes(self, push_channel, debounce):
        store = AsyncMock()
        store.insert.side_effect = PersistenceError("disk full")
        dispatcher = AlertDispatcher(store, push_channel, debounce=debounce)

        alerts = await dispatcher.dispatch(_triggered(wind_speed=70.0), "voy-1", "cap-1")
        assert len(alerts) == 2
        assert push_channel.emit.await_count == 2

    @pytest.mark.asyncio
    async def test_push_failure_does_not_stop_batch(self, alert_store, debounce):
        channel = AsyncMock()
        channel.emit.side_effect = PushError("socket closed")
        dispatcher = AlertDispatcher(alert_store, channel, debounce=debounce)

        alerts = await dispatcher.dispatch(_triggered(wind_speed=70.0), "voy-1", "cap-1")
        assert len(alerts) == 2
        assert len(alert_store.alerts) == 2

    @pytest.mark.asyncio
    async def test_untyped_store_error_does_not_stop_batch(self, push_channel, debounce):
        store = AsyncMock()
        store.insert.side_effect = RuntimeError("connection reset")
        dispatcher = AlertDispatcher(store, push_channel, debounce=debounce)

        alerts = await dispatcher.dispatch(_triggered(wind_speed=70.0), "voy-1", "cap-1")
        assert len(alerts) == 2
        assert store.insert.await_count == 2
        assert push_channel.emit.await_count == 2

    @pytest.mark.asyncio
    async def test_untyped_push_error_does_not_stop_batch(self, alert_store, debounce):
        channel = AsyncMock()
        channel.emit.side_effect = ConnectionResetError("peer gone")
        dispatcher = AlertDispatcher(alert_store, channel, debounce=debounce)

        alerts = await dispatcher.dispatch(_triggered(wind_speed=70.0), "voy-1", "cap-1")
        assert len(alerts) == 2
        assert channel.emit.await_count == 2
        assert len(alert_store.alerts) == 2

    @pytest.mark.asyncio
    async def test_empty_batch(self, dispatcher, push_channel):
        assert await dispatcher.dispatch([], "voy-1", "cap-1") == []
        push_channel.emit.assert_not_awaited()


# =============================================================================
# DEMO / RECENT
# =============================================================================

class TestDemoAndRecent:

    @pytest.mark.asyncio
    async def test_demo_disabled_is_noop(self, dispatcher, alert_store, push_channel):
        assert await dispatcher.send_demo_alert("voy-1", "cap-1") is None
        assert alert_store.alerts == []
        push_channel.emit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_demo_alert_sent(self, alert_store, push_channel, debounce):
        dispatcher = AlertDispatcher(
            alert_store, push_channel, debounce=debounce,
            demo_mode=True, chooser=lambda options: options[1],
        )
        alert = await dispatcher.send_demo_alert("voy-1", "cap-1")

        assert alert.alert_type == "demo_dense_fog"
        assert alert.message == DEMO_ALERTS[1]["message"]
        assert alert_store.alerts == [alert]
        push_channel.emit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_recent_alerts_ordering(self, dispatcher):
        await dispatcher.dispatch(_triggered(wind_speed=70.0), "voy-1", "cap-1")
        await dispatcher.dispatch(_triggered(visibility=50.0), "voy-1", "cap-1")
        await dispatcher.dispatch(_triggered(wind_speed=70.0), "voy-other", "cap-9")

        recent = await dispatcher.recent_alerts("voy-1")
        assert all(a.voyage_id == "voy-1" for a in recent)
        assert [a.priority for a in recent] == sorted(a.priority for a in recent)
        assert {a.alert_type for a in recent[:2]} == {"zero_visibility", "hurricane_force_winds"}

    @pytest.mark.asyncio
    async def test_recent_alerts_store_failure(self, push_channel, debounce):
        store = AsyncMock()
        store.query_recent.side_effect = PersistenceError("locked")
        dispatcher = AlertDispatcher(store, push_channel, debounce=debounce)
        assert await dispatcher.recent_alerts("voy-1") == []

    @pytest.mark.asyncio
    async def test_recent_window(self, dispatcher, alert_store):
        await dispatcher.dispatch(_triggered(), "voy-1", "cap-1")
        recent = await dispatcher.recent_alerts("voy-1", window_days=10)
        assert len(recent) == 1
        assert await alert_store.query_recent("voy-1", timedelta(seconds=0)) == []
