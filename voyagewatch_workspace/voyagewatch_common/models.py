"""
VoyageWatch — Domain Models
===========================
Pydantic models exchanged between the engines, the stores and the HTTP
surfaces. Weather snapshots are frozen: once the provider produced one,
nothing downstream may alter it.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Weather ───────────────────────────────────────────────────────────────────

class WeatherSnapshot(BaseModel):
    """Point-in-time conditions at one position. Wind in knots."""

    model_config = ConfigDict(frozen=True)

    temperature:    float = 0.0        # °C
    humidity:       float = 0.0        # %
    wind_speed:     float = 0.0        # kt
    wind_direction: float = 0.0        # deg, meteorological "from"
    pressure:       float = 0.0        # hPa
    visibility:     float = 10000.0    # m
    cloud_cover:    float = 0.0        # %
    precipitation:  float = 0.0        # mm/hr
    weather_code:   int   = 0          # WMO code
    wave_height:    Optional[float] = None   # m
    wave_direction: Optional[float] = None   # deg
    wave_period:    Optional[float] = None   # s
    timestamp:      datetime = Field(default_factory=utcnow)
    location:       Tuple[float, float] = (0.0, 0.0)


class ForecastSnapshot(BaseModel):
    """Daily forecast entries, chronological; daily[0] is the nearest period."""

    model_config = ConfigDict(frozen=True)

    daily:    List[WeatherSnapshot] = Field(default_factory=list)
    location: Tuple[float, float] = (0.0, 0.0)

    @property
    def next_period(self) -> Optional[WeatherSnapshot]:
        return self.daily[0] if self.daily else None


# ── Alerts ────────────────────────────────────────────────────────────────────

class Alert(BaseModel):
    """A dispatched navigational alert, as persisted and pushed."""

    id:              str = Field(default_factory=lambda: str(uuid.uuid4()))
    voyage_id:       str
    recipient_id:    Optional[str] = None
    alert_type:      str
    message:         str
    severity:        str
    priority:        int = 5
    category:        str = "general"
    recommendations: List[str] = Field(default_factory=list)
    weather_data:    Dict[str, Any] = Field(default_factory=dict)
    created_at:      datetime = Field(default_factory=utcnow)

    def push_payload(self) -> Dict[str, Any]:
        """Shape sent on the `new-alert` push event."""
        return {
            "id":              self.id,
            "alertType":       self.alert_type,
            "message":         self.message,
            "severity":        self.severity,
            "priority":        self.priority,
            "category":        self.category,
            "recommendations": list(self.recommendations),
            "weatherData":     dict(self.weather_data),
            "timestamp":       int(self.created_at.timestamp() * 1000),
        }


# ── Voyages ───────────────────────────────────────────────────────────────────

class Waypoint(BaseModel):
    latitude:  float
    longitude: float
    name:      Optional[str] = None

    @property
    def point(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


class Vessel(BaseModel):
    id:                    str
    name:                  str = ""
    eco_speed_knots:       float
    fuel_consumption_rate: Optional[float] = None   # tons / nm


class Voyage(BaseModel):
    id:               str
    vessel_id:        str
    route_waypoints:  List[Waypoint] = Field(default_factory=list)
    origin_port:      Optional[str] = None
    destination_port: Optional[str] = None


class VoyageLeg(BaseModel):
    index:                int
    start_waypoint:       Waypoint
    end_waypoint:         Waypoint
    distance_nm:          float
    bearing_deg:          float
    weather:              Optional[WeatherSnapshot] = None
    wind_factor:          float = 1.0
    wave_factor:          float = 1.0
    combined_factor:      float = 1.0
    base_speed_knots:     float
    adjusted_speed_knots: float
    duration_hours:       float
    fuel_tons:            float
    fuel_cost:            float
    performance_insight:  str


class VoyageSummary(BaseModel):
    voyage_id:            Optional[str] = None
    vessel_id:            Optional[str] = None
    fuel_price_per_ton:   float
    total_distance_nm:    float
    total_duration_hours: float
    total_duration_days:  float
    total_fuel_tons:      float
    total_fuel_cost:      float
    average_fuel_per_nm:  float
    degraded_legs:        int = 0
    legs:                 List[VoyageLeg] = Field(default_factory=list)
