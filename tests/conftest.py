"""
VoyageWatch Test Configuration and Fixtures

Shared snapshots, an in-memory weather provider and fresh backends for
each test.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from voyagewatch_common.cache  import MemoryCache
from voyagewatch_common.errors import UpstreamUnavailable
from voyagewatch_common.models import ForecastSnapshot, WeatherSnapshot
from voyagewatch_common.store  import InMemoryAlertStore


def make_weather(**overrides) -> WeatherSnapshot:
    """Calm, clear conditions unless overridden."""
    fields = dict(
        temperature    = 18.0,
        humidity       = 70.0,
        wind_speed     = 5.0,
        wind_direction = 0.0,
        pressure       = 1015.0,
        visibility     = 10000.0,
        cloud_cover    = 10.0,
        precipitation  = 0.0,
        weather_code   = 0,
        timestamp      = datetime(2026, 1, 1, tzinfo=timezone.utc),
        location       = (0.0, 0.0),
    )
    fields.update(overrides)
    return WeatherSnapshot(**fields)


def make_forecast(*pressures: float) -> ForecastSnapshot:
    return ForecastSnapshot(daily=[make_weather(pressure=p) for p in pressures])


class FakeWeatherProvider:
    """
    Stand-in for OpenMeteoClient. Returns the configured snapshots, or
    raises when a value is an exception instance.
    """

    def __init__(self, realtime=None, forecast=None, marine=None):
        self.realtime = realtime if realtime is not None else make_weather()
        self.forecast = forecast
        self.marine   = marine if marine is not None else make_weather()
        self.calls    = []

    async def fetch_realtime(self, lat, lon):
        self.calls.append(("realtime", lat, lon))
        return self._resolve(self.realtime)

    async def fetch_forecast(self, lat, lon, days=10):
        self.calls.append(("forecast", lat, lon))
        if self.forecast is None:
            raise UpstreamUnavailable("no forecast configured")
        return self._resolve(self.forecast)

    async def fetch_marine(self, lat, lon):
        self.calls.append(("marine", lat, lon))
        value = self.marine(lat, lon) if callable(self.marine) else self.marine
        return self._resolve(value)

    async def health(self):
        return {"api": True, "cache": True}

    async def aclose(self):
        pass

    @staticmethod
    def _resolve(value):
        if isinstance(value, BaseException):
            raise value
        return value


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def calm_weather():
    return make_weather()


@pytest.fixture
def memory_cache():
    return MemoryCache()


@pytest.fixture
def alert_store():
    return InMemoryAlertStore()


@pytest.fixture
def push_channel():
    channel = AsyncMock()
    channel.emit = AsyncMock(return_value=1)
    return channel


@pytest.fixture
def weather_provider():
    return FakeWeatherProvider()
