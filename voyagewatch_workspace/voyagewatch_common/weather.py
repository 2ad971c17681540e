"""
VoyageWatch — Marine Weather Helpers
====================================
Pure functions derived from a WeatherSnapshot: wind chill, Beaufort sea
state, cyclone detection and WMO weather-code descriptions. Used by the
alert rule table.

Wind speeds are knots throughout.
"""

from typing import Optional, Tuple

from .models import ForecastSnapshot, WeatherSnapshot

KMH_PER_KNOT = 1.852


# ── Beaufort scale ────────────────────────────────────────────────────────────
# (upper bound in knots, exclusive; description). Force 12 has no upper bound.
BEAUFORT_SCALE: Tuple[Tuple[float, str], ...] = (
    ( 1, "Calm (glassy)"),
    ( 4, "Light air (ripples)"),
    ( 7, "Light breeze (small wavelets)"),
    (11, "Gentle breeze (large wavelets)"),
    (16, "Moderate breeze (small waves)"),
    (22, "Fresh breeze (moderate waves)"),
    (28, "Strong breeze (large waves)"),
    (34, "High wind (sea heaps up)"),
    (41, "Gale (moderately high waves)"),
    (48, "Strong gale (high waves)"),
    (56, "Storm (very high waves)"),
    (64, "Violent storm (exceptionally high waves)"),
)
HURRICANE_FORCE = "Hurricane force (phenomenal waves)"


def sea_state(wind_speed: float) -> Tuple[int, str]:
    """Return (Beaufort force 0–12, description) for a wind speed in knots."""
    for force, (upper, description) in enumerate(BEAUFORT_SCALE):
        if wind_speed < upper:
            return force, description
    return 12, HURRICANE_FORCE


# ── Wind chill ────────────────────────────────────────────────────────────────

def wind_chill(temperature: float, wind_speed: float) -> float:
    """
    Wind chill (°C) using the North American index with the wind converted
    to km/h. Only defined for T ≤ 10 °C and wind ≥ 4.8 kt; otherwise the
    air temperature is returned unchanged.
    """
    if temperature > 10 or wind_speed < 4.8:
        return temperature
    v = (wind_speed * KMH_PER_KNOT) ** 0.16
    return 13.12 + 0.6215 * temperature - 11.37 * v + 0.3965 * temperature * v


# ── Cyclone detection ─────────────────────────────────────────────────────────

def pressure_delta(weather: WeatherSnapshot,
                   forecast: Optional[ForecastSnapshot]) -> Optional[float]:
    """Current pressure minus the next forecast period's, or None."""
    if forecast is None or forecast.next_period is None:
        return None
    return weather.pressure - forecast.next_period.pressure


def detect_cyclone(weather: WeatherSnapshot,
                   forecast: Optional[ForecastSnapshot] = None) -> bool:
    """
    True when any cyclone signature is present:
      - pressure below 980 hPa
      - pressure below 1000 hPa with winds above 35 kt
      - forecast pressure drop above 5 hPa with winds above 25 kt
    """
    delta = pressure_delta(weather, forecast)
    dropping = delta is not None and delta > 5

    return (
        weather.pressure < 980
        or (weather.pressure < 1000 and weather.wind_speed > 35)
        or (dropping and weather.wind_speed > 25)
    )


# ── WMO weather codes ─────────────────────────────────────────────────────────

WEATHER_CODES = {
     0: "Clear sky",
     1: "Mainly clear",
     2: "Partly cloudy",
     3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    71: "Slight snow fall",
    73: "Moderate snow fall",
    75: "Heavy snow fall",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}


def weather_condition(code: int) -> str:
    return WEATHER_CODES.get(code, "Unknown weather condition")
