"""
VoyageWatch — Open-Meteo Weather Provider
=========================================
Asynchronous client for the Open-Meteo forecast and marine APIs.

  fetch_realtime(lat, lon)        current conditions      → WeatherSnapshot
  fetch_forecast(lat, lon, days)  daily aggregates        → ForecastSnapshot
  fetch_marine(lat, lon)          current + first-hour waves → WeatherSnapshot

Every call is bounded by WEATHER_TIMEOUT_S. Any failure (timeout, HTTP
status, transport error, malformed payload) raises UpstreamUnavailable;
callers degrade and never retry within the same request.

Responses are cached for WEATHER_CACHE_TTL_S under
`weather:{kind}:{lat:.4f}:{lon:.4f}`. A broken cache never fails a fetch,
and an entry that no longer validates is refetched.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError as SchemaError

from . import config
from .errors import UpstreamUnavailable
from .models import ForecastSnapshot, WeatherSnapshot

log = logging.getLogger("common.weather_client")

_USER_AGENT = "VoyageWatch/1.0"

_HOURLY_ATMOSPHERE = [
    "relativehumidity_2m",
    "surface_pressure",
    "visibility",
    "cloudcover",
    "precipitation",
]

_HOURLY_MARINE = [
    "wave_height",
    "wave_direction",
    "wave_period",
]

_DAILY_FORECAST = [
    "temperature_2m_max",
    "temperature_2m_min",
    "windspeed_10m_max",
    "winddirection_10m_dominant",
    "surface_pressure_mean",
    "cloudcover_mean",
    "precipitation_sum",
    "weathercode",
]


def cache_key(kind: str, lat: float, lon: float) -> str:
    return f"weather:{kind}:{lat:.4f}:{lon:.4f}"


def _first(series: Optional[list], default=None):
    """First element of an hourly series, or default when absent / null."""
    if not series:
        return default
    value = series[0]
    return default if value is None else value


def _at(series: Optional[list], index: int, default=None):
    if not series or index >= len(series) or series[index] is None:
        return default
    return series[index]


def _required(value, field: str):
    """Null readings raise ValueError, which `_parse` maps to UpstreamUnavailable."""
    if value is None:
        raise ValueError(f"missing {field}")
    return value


# ── Payload transforms ────────────────────────────────────────────────────────

def transform_current(data: Dict[str, Any], lat: float, lon: float) -> WeatherSnapshot:
    current = data["current_weather"]
    hourly  = data.get("hourly") or {}
    return WeatherSnapshot(
        temperature    = current.get("temperature", 0.0),
        wind_speed     = current.get("windspeed", 0.0),
        wind_direction = current.get("winddirection", 0.0),
        weather_code   = int(current.get("weathercode", 0) or 0),
        humidity       = _first(hourly.get("relativehumidity_2m"), 0.0),
        pressure       = _required(_first(hourly.get("surface_pressure")), "surface_pressure"),
        visibility     = _first(hourly.get("visibility"), 10000.0),
        cloud_cover    = _first(hourly.get("cloudcover"), 0.0),
        precipitation  = _first(hourly.get("precipitation"), 0.0),
        timestamp      = datetime.now(timezone.utc),
        location       = (lat, lon),
    )


def transform_forecast(data: Dict[str, Any], lat: float, lon: float) -> ForecastSnapshot:
    daily = data["daily"]
    entries = []
    for i, day in enumerate(daily["time"]):
        t_max = _at(daily.get("temperature_2m_max"), i)
        t_min = _at(daily.get("temperature_2m_min"), i)
        temperature = (t_max + t_min) / 2 if t_max is not None and t_min is not None else 0.0

        entries.append(WeatherSnapshot(
            temperature    = temperature,
            wind_speed     = _at(daily.get("windspeed_10m_max"), i, 0.0),
            wind_direction = _at(daily.get("winddirection_10m_dominant"), i, 0.0),
            pressure       = _required(_at(daily.get("surface_pressure_mean"), i), "surface_pressure_mean"),
            cloud_cover    = _at(daily.get("cloudcover_mean"), i, 0.0),
            precipitation  = _at(daily.get("precipitation_sum"), i, 0.0),
            weather_code   = int(_at(daily.get("weathercode"), i, 0)),
            timestamp      = datetime.fromisoformat(day).replace(tzinfo=timezone.utc),
            location       = (lat, lon),
        ))
    return ForecastSnapshot(daily=entries, location=(lat, lon))


def merge_marine(base: WeatherSnapshot, marine: Dict[str, Any]) -> WeatherSnapshot:
    hourly = marine.get("hourly") or {}
    return base.model_copy(update={
        "wave_height":    _first(hourly.get("wave_height")),
        "wave_direction": _first(hourly.get("wave_direction")),
        "wave_period":    _first(hourly.get("wave_period")),
    })


# ── Client ────────────────────────────────────────────────────────────────────

class OpenMeteoClient:

    def __init__(
        self,
        cache=None,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url:   str   = config.WEATHER_API_BASE,
        marine_url: str   = config.MARINE_API_BASE,
        timeout_s:  float = config.WEATHER_TIMEOUT_S,
        cache_ttl_s: int  = config.WEATHER_CACHE_TTL_S,
    ):
        self.cache       = cache
        self.base_url    = base_url.rstrip("/")
        self.marine_url  = marine_url.rstrip("/")
        self.timeout_s   = timeout_s
        self.cache_ttl_s = cache_ttl_s
        self._owns_client = http_client is None
        self._http = http_client if http_client is not None else httpx.AsyncClient(
            timeout=timeout_s,
            headers={"User-Agent": _USER_AGENT},
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    # ── Public API ────────────────────────────────────────────────────────────

    async def fetch_realtime(self, lat: float, lon: float) -> WeatherSnapshot:
        return await self._bounded(self._realtime(lat, lon), "realtime", lat, lon)

    async def fetch_forecast(self, lat: float, lon: float, days: int = 10) -> ForecastSnapshot:
        return await self._bounded(self._forecast(lat, lon, days), "forecast", lat, lon)

    async def fetch_marine(self, lat: float, lon: float) -> WeatherSnapshot:
        return await self._bounded(self._marine(lat, lon), "marine", lat, lon)

    async def health(self) -> Dict[str, bool]:
        """Check the forecast API and the cache independently."""
        api_ok, cache_ok = await asyncio.gather(
            self._check_api(), self._check_cache(), return_exceptions=True,
        )
        return {"api": api_ok is True, "cache": cache_ok is True}

    # ── Fetchers ──────────────────────────────────────────────────────────────

    async def _realtime(self, lat: float, lon: float) -> WeatherSnapshot:
        key = cache_key("realtime", lat, lon)
        cached = await self._cached(key, WeatherSnapshot)
        if cached is not None:
            return cached

        data = await self._get_json(f"{self.base_url}/forecast", self._current_params(lat, lon))
        snapshot = self._parse(transform_current, data, lat, lon)
        await self._cache_set(key, snapshot.model_dump(mode="json"))
        return snapshot

    async def _forecast(self, lat: float, lon: float, days: int) -> ForecastSnapshot:
        days = max(1, min(int(days), config.FORECAST_MAX_DAYS))
        key = cache_key(f"forecast_{days}d", lat, lon)
        cached = await self._cached(key, ForecastSnapshot)
        if cached is not None:
            return cached

        params = {
            "latitude":       lat,
            "longitude":      lon,
            "daily":          ",".join(_DAILY_FORECAST),
            "windspeed_unit": "kn",
            "timezone":       "auto",
            "forecast_days":  days,
        }
        data = await self._get_json(f"{self.base_url}/forecast", params)
        forecast = self._parse(transform_forecast, data, lat, lon)
        await self._cache_set(key, forecast.model_dump(mode="json"))
        return forecast

    async def _marine(self, lat: float, lon: float) -> WeatherSnapshot:
        key = cache_key("marine", lat, lon)
        cached = await self._cached(key, WeatherSnapshot)
        if cached is not None:
            return cached

        marine_params = {
            "latitude":      lat,
            "longitude":     lon,
            "hourly":        ",".join(_HOURLY_MARINE),
            "timezone":      "auto",
            "forecast_days": 1,
        }
        marine_data, current_data = await asyncio.gather(
            self._get_json(f"{self.marine_url}/marine", marine_params),
            self._get_json(f"{self.base_url}/forecast", self._current_params(lat, lon)),
        )
        base = self._parse(transform_current, current_data, lat, lon)
        snapshot = merge_marine(base, marine_data)
        await self._cache_set(key, snapshot.model_dump(mode="json"))
        return snapshot

    # ── Helpers ───────────────────────────────────────────────────────────────

    @staticmethod
    def _current_params(lat: float, lon: float) -> Dict[str, Any]:
        return {
            "latitude":        lat,
            "longitude":       lon,
            "current_weather": "true",
            "hourly":          ",".join(_HOURLY_ATMOSPHERE),
            "windspeed_unit":  "kn",
            "timezone":        "auto",
            "forecast_days":   1,
        }

    async def _bounded(self, coro, kind: str, lat: float, lon: float):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout_s)
        except asyncio.TimeoutError as exc:
            log.warning(f"Weather {kind} fetch timed out after {self.timeout_s}s at [{lat}, {lon}]")
            raise UpstreamUnavailable(f"{kind} weather timed out") from exc

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = await self._http.get(url, params=params)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise UpstreamUnavailable(f"Weather API HTTP error: {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamUnavailable(f"Weather API request failed: {exc}") from exc
        if not data:
            raise UpstreamUnavailable("Empty response from weather API")
        return data

    @staticmethod
    def _parse(transform, data: Dict[str, Any], lat: float, lon: float):
        try:
            return transform(data, lat, lon)
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamUnavailable(f"Malformed weather payload: {exc!r}") from exc

    async def _cache_get(self, key: str):
        if self.cache is None:
            return None
        try:
            return await self.cache.get(key)
        except Exception as exc:
            log.error(f"Cache read error for {key}: {exc}")
            return None

    async def _cached(self, key: str, model):
        """Cached snapshot, or None on a miss. Entries that no longer validate count as a miss."""
        cached = await self._cache_get(key)
        if cached is None:
            return None
        try:
            return model.model_validate(cached)
        except SchemaError as exc:
            log.warning(f"Discarding invalid cache entry {key}: {exc.error_count()} error(s)")
            return None

    async def _cache_set(self, key: str, value) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.set(key, value, self.cache_ttl_s)
        except Exception as exc:
            log.error(f"Cache write error for {key}: {exc}")

    async def _check_api(self) -> bool:
        await self._get_json(
            f"{self.base_url}/forecast",
            {"latitude": 0, "longitude": 0, "current_weather": "true"},
        )
        return True

    async def _check_cache(self) -> bool:
        if self.cache is None:
            return False
        return bool(await self.cache.ping())
