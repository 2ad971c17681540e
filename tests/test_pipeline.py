"""
Alert pipeline tests: position validation and the compiled LangGraph
run end to end with in-memory backends.
"""

import pytest

from voyagewatch_alerts.dispatcher import DebounceRegistry
from voyagewatch_alerts.location   import location_key
from voyagewatch_alerts.nodes      import parse_position_event
from voyagewatch_alerts.service    import build_services
from voyagewatch_common.errors     import UpstreamUnavailable, ValidationError

from conftest import FakeWeatherProvider, make_forecast, make_weather


EVENT = {"recipientId": "cap-1", "voyageId": "voy-1", "lat": 43.3, "lon": 5.4}


@pytest.fixture
def services(memory_cache, alert_store, push_channel):
    def _build(weather=None):
        return build_services(
            cache     = memory_cache,
            store     = alert_store,
            channel   = push_channel,
            weather   = weather or FakeWeatherProvider(),
            debounce  = DebounceRegistry(),
            demo_mode = False,
        )
    return _build


# =============================================================================
# VALIDATION
# =============================================================================

class TestParsePositionEvent:

    def test_valid_event(self):
        assert parse_position_event(EVENT) == {
            "recipient_id": "cap-1", "voyage_id": "voy-1", "lat": 43.3, "lon": 5.4,
        }

    def test_accepts_legacy_field_names(self):
        parsed = parse_position_event({"captainId": "c", "voyage_id": "v", "lat": 1, "lon": 2})
        assert parsed["recipient_id"] == "c"
        assert parsed["voyage_id"] == "v"

    @pytest.mark.parametrize("field", ["recipientId", "voyageId", "lat", "lon"])
    def test_missing_field(self, field):
        event = {k: v for k, v in EVENT.items() if k != field}
        with pytest.raises(ValidationError):
            parse_position_event(event)

    @pytest.mark.parametrize("lat, lon", [(0.0, 45.0), (12.0, 0.0), (0, 0)])
    def test_equator_and_prime_meridian_accepted(self, lat, lon):
        parsed = parse_position_event({**EVENT, "lat": lat, "lon": lon})
        assert (parsed["lat"], parsed["lon"]) == (float(lat), float(lon))

    @pytest.mark.parametrize("field", ["lat", "lon"])
    def test_null_coordinate_rejected(self, field):
        with pytest.raises(ValidationError):
            parse_position_event({**EVENT, field: None})

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            parse_position_event({**EVENT, "recipientId": ""})

    def test_out_of_range(self):
        with pytest.raises(ValidationError):
            parse_position_event({**EVENT, "lat": 95.0})

    def test_non_numeric(self):
        with pytest.raises(ValidationError):
            parse_position_event({**EVENT, "lon": "east"})

    def test_not_an_object(self):
        with pytest.raises(ValidationError):
            parse_position_event(["cap-1"])


# =============================================================================
# PIPELINE
# =============================================================================

class TestAlertPipeline:

    @pytest.mark.asyncio
    async def test_invalid_event_touches_nothing(self, services, memory_cache, push_channel):
        weather = FakeWeatherProvider()
        svc = services(weather)

        result = await svc.process_position({**EVENT, "voyageId": ""})

        assert result["status"] == "error"
        assert weather.calls == []
        assert await memory_cache.get(location_key("cap-1")) is None
        push_channel.emit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_hurricane_dispatches_alerts(self, services, alert_store, push_channel):
        svc = services(FakeWeatherProvider(realtime=make_weather(wind_speed=70.0)))

        result = await svc.process_position(EVENT)

        assert result["status"] == "complete"
        assert [a.alert_type for a in result["alerts"]] == ["hurricane_force_winds", "heavy_seas"]
        assert len(alert_store.alerts) == 2
        assert push_channel.emit.await_count == 2

    @pytest.mark.asyncio
    async def test_second_report_nearby_is_skipped(self, services):
        weather = FakeWeatherProvider()
        svc = services(weather)

        await svc.process_position(EVENT)
        result = await svc.process_position({**EVENT, "lat": 43.3001})

        assert result["status"] == "skipped"
        assert len([c for c in weather.calls if c[0] == "realtime"]) == 1

    @pytest.mark.asyncio
    async def test_realtime_failure_skips_evaluation(self, services, alert_store):
        svc = services(FakeWeatherProvider(realtime=UpstreamUnavailable("timeout")))

        result = await svc.process_position(EVENT)

        assert result["status"] == "skipped"
        assert alert_store.alerts == []

    @pytest.mark.asyncio
    async def test_realtime_failure_releases_location(self, services, memory_cache):
        weather = FakeWeatherProvider(realtime=UpstreamUnavailable("timeout"))
        svc = services(weather)

        await svc.process_position(EVENT)
        assert await memory_cache.get(location_key("cap-1")) is None

        weather.realtime = make_weather(wind_speed=70.0)
        result = await svc.process_position(EVENT)

        assert result["status"] == "complete"
        assert len(result["alerts"]) == 2

    @pytest.mark.asyncio
    async def test_unexpected_realtime_error_skips(self, services, alert_store):
        svc = services(FakeWeatherProvider(realtime=RuntimeError("bad cache entry")))

        result = await svc.process_position(EVENT)

        assert result["status"] == "skipped"
        assert alert_store.alerts == []

    @pytest.mark.asyncio
    async def test_hurricane_on_equator_dispatches(self, services):
        svc = services(FakeWeatherProvider(realtime=make_weather(wind_speed=70.0)))

        result = await svc.process_position({**EVENT, "lat": 0.0, "lon": 0.0})

        assert result["status"] == "complete"
        assert result["alerts"][0].alert_type == "hurricane_force_winds"

    @pytest.mark.asyncio
    async def test_forecast_failure_still_evaluates(self, services):
        svc = services(FakeWeatherProvider(realtime=make_weather(visibility=50.0), forecast=None))

        result = await svc.process_position(EVENT)

        assert result["status"] == "complete"
        assert result["forecast"] is None
        assert [a.alert_type for a in result["alerts"]] == ["zero_visibility"]

    @pytest.mark.asyncio
    async def test_forecast_feeds_pressure_rule(self, services):
        svc = services(FakeWeatherProvider(
            realtime=make_weather(pressure=1015.0),
            forecast=make_forecast(1009.0),
        ))

        result = await svc.process_position(EVENT)

        assert "rapid_pressure_change" in [a.alert_type for a in result["alerts"]]

    @pytest.mark.asyncio
    async def test_alert_carries_ids(self, services):
        svc = services(FakeWeatherProvider(realtime=make_weather(visibility=500.0)))

        result = await svc.process_position(EVENT)

        alert = result["alerts"][0]
        assert alert.voyage_id == "voy-1"
        assert alert.recipient_id == "cap-1"
        assert alert.weather_data["visibility"] == 500.0
