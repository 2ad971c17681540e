"""
VoyageWatch — Runtime Configuration
===================================
Environment-driven settings shared by the alert and costing services.
Values are read once at import time (after `load_dotenv()`), so a `.env`
file next to the workspace is honoured in development.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parents[1] / ".env")
load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return float(raw)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ── Weather provider (Open-Meteo) ─────────────────────────────────────────────
WEATHER_API_BASE    = os.getenv("WEATHER_API_BASE", "https://api.open-meteo.com/v1")
MARINE_API_BASE     = os.getenv("MARINE_API_BASE",  "https://marine-api.open-meteo.com/v1")
WEATHER_TIMEOUT_S   = _env_float("WEATHER_TIMEOUT_S",   5.0)
WEATHER_CACHE_TTL_S = int(_env_float("WEATHER_CACHE_TTL_S", 30 * 60))
FORECAST_MAX_DAYS   = 16            # Open-Meteo hard limit

# ── Location change detection ─────────────────────────────────────────────────
LOCATION_TTL_S                 = int(_env_float("LOCATION_TTL_S", 2 * 60))
LOCATION_DISTANCE_THRESHOLD_KM = _env_float("LOCATION_DISTANCE_THRESHOLD_KM", 0.5)
LOCATION_TIME_THRESHOLD_MIN    = _env_float("LOCATION_TIME_THRESHOLD_MIN", 10.0)

# ── Alerts ────────────────────────────────────────────────────────────────────
RECENT_ALERT_WINDOW_DAYS = int(_env_float("RECENT_ALERT_WINDOW_DAYS", 10))
DEMO_MODE                = _env_bool("DEMO", False)

# ── Infrastructure ────────────────────────────────────────────────────────────
REDIS_URL:        Optional[str] = os.getenv("REDIS_URL") or None
ALERT_DB_PATH:    Optional[str] = os.getenv("ALERT_DB_PATH") or None
VOYAGE_DATA_PATH: Optional[str] = os.getenv("VOYAGE_DATA_PATH") or None
LOG_DIR:          Optional[str] = os.getenv("LOG_DIR") or None


# ── Resistance model ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ResistanceModel:
    """
    Empirical constants of the leg resistance model.

    The divisors scale a weather magnitude (knots for wind, metres for waves)
    into a fractional change of fuel burn; the speed coefficients convert the
    combined factor into a speed penalty / bonus. None of these are derived
    from hull physics.
    """

    wind_head:      float = 40.0
    wind_beam:      float = 80.0
    wind_following: float = 60.0

    wave_head:      float = 20.0
    wave_beam:      float = 40.0
    wave_following: float = 30.0

    head_max_angle:  float = 60.0     # angle difference ≤ this → head
    beam_max_angle:  float = 120.0    # angle difference < this → beam

    slowdown_coefficient: float = 0.8
    speedup_coefficient:  float = 0.2

    min_factor:        float = 0.1    # factors never drop to 0 or below
    default_fuel_rate: float = 0.2    # tons / nm when the vessel has none

    def divisors(self, influence: str):
        """Return (head, beam, following) divisors for 'wind' or 'wave'."""
        if influence == "wind":
            return self.wind_head, self.wind_beam, self.wind_following
        if influence == "wave":
            return self.wave_head, self.wave_beam, self.wave_following
        raise ValueError(f"Unknown influence type: {influence}")


DEFAULT_RESISTANCE_MODEL = ResistanceModel(
    wind_head            = _env_float("RESISTANCE_WIND_HEAD",      40.0),
    wind_beam            = _env_float("RESISTANCE_WIND_BEAM",      80.0),
    wind_following       = _env_float("RESISTANCE_WIND_FOLLOWING", 60.0),
    wave_head            = _env_float("RESISTANCE_WAVE_HEAD",      20.0),
    wave_beam            = _env_float("RESISTANCE_WAVE_BEAM",      40.0),
    wave_following       = _env_float("RESISTANCE_WAVE_FOLLOWING", 30.0),
    slowdown_coefficient = _env_float("SPEED_SLOWDOWN_COEFFICIENT", 0.8),
    speedup_coefficient  = _env_float("SPEED_SPEEDUP_COEFFICIENT",  0.2),
)
