"""
VoyageWatch Costing — Voyage Leg Analyzer
=========================================
VoyageLegAnalyzer splits a route into legs between consecutive waypoints
and estimates, per leg, the weather-adjusted speed, duration, fuel burn
and fuel cost. Legs are aggregated into a VoyageSummary.

Midpoint weather for all legs is fetched concurrently. A leg whose fetch
fails or times out is costed at standard conditions (factor 1.0) and
counted in `degraded_legs`; it never aborts the voyage.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from voyagewatch_common        import config
from voyagewatch_common.config import DEFAULT_RESISTANCE_MODEL, ResistanceModel
from voyagewatch_common.errors import NotFoundError, ValidationError
from voyagewatch_common.geo    import bearing_deg, distance_nm, midpoint
from voyagewatch_common.models import VoyageLeg, VoyageSummary, Waypoint, WeatherSnapshot

from .resistance import STANDARD_CONDITIONS, adjust_speed, combine, resistance_factor

log = logging.getLogger("costing.analyzer")


class VoyageLegAnalyzer:

    def __init__(
        self,
        weather,
        repository = None,
        model:     ResistanceModel = DEFAULT_RESISTANCE_MODEL,
        timeout_s: float           = config.WEATHER_TIMEOUT_S,
    ):
        self.weather    = weather
        self.repository = repository
        self.model      = model
        self.timeout_s  = timeout_s

    # ── Voyage ────────────────────────────────────────────────────────────────

    async def analyze_voyage(self, voyage_id: str, fuel_price_per_ton: float) -> VoyageSummary:
        """Resolve voyage and vessel, then cost the voyage's route."""
        self._require_positive("Fuel price per ton", fuel_price_per_ton)

        voyage = await self.repository.get_voyage(voyage_id)
        if voyage is None:
            raise NotFoundError(f"Voyage {voyage_id} not found")
        if len(voyage.route_waypoints) < 2:
            raise NotFoundError(f"Voyage {voyage_id} route is incomplete")

        vessel = await self.repository.get_vessel(voyage.vessel_id)
        if vessel is None:
            raise NotFoundError(f"Vessel {voyage.vessel_id} not found")

        log.info(
            f"Costing voyage {voyage_id}: vessel {vessel.id}, "
            f"{len(voyage.route_waypoints)} waypoints, {fuel_price_per_ton}/t"
        )
        summary = await self.analyze_route(
            voyage.route_waypoints,
            eco_speed_knots    = vessel.eco_speed_knots,
            fuel_rate          = vessel.fuel_consumption_rate,
            fuel_price_per_ton = fuel_price_per_ton,
        )
        return summary.model_copy(update={"voyage_id": voyage.id, "vessel_id": vessel.id})

    # ── Route ─────────────────────────────────────────────────────────────────

    async def analyze_route(
        self,
        waypoints:          Sequence[Waypoint],
        eco_speed_knots:    float,
        fuel_rate:          Optional[float],
        fuel_price_per_ton: float,
    ) -> VoyageSummary:
        if len(waypoints) < 2:
            raise ValidationError("At least 2 waypoints are required")
        self._require_positive("Eco speed", eco_speed_knots)
        self._require_positive("Fuel price per ton", fuel_price_per_ton)
        rate = fuel_rate if fuel_rate else self.model.default_fuel_rate
        if rate < 0:
            raise ValidationError(f"Fuel consumption rate must be ≥ 0, got {rate}")

        pairs = list(zip(waypoints[:-1], waypoints[1:]))
        snapshots = await asyncio.gather(
            *(self._leg_weather(midpoint(a.point, b.point)) for a, b in pairs)
        )

        legs = [
            self._cost_leg(i, a, b, weather, eco_speed_knots, rate, fuel_price_per_ton)
            for i, ((a, b), weather) in enumerate(zip(pairs, snapshots))
        ]
        return self._summarise(legs, fuel_price_per_ton)

    # ── Leg ───────────────────────────────────────────────────────────────────

    def _cost_leg(
        self,
        index:      int,
        start:      Waypoint,
        end:        Waypoint,
        weather:    Optional[WeatherSnapshot],
        base_speed: float,
        fuel_rate:  float,
        fuel_price: float,
    ) -> VoyageLeg:
        dist    = distance_nm(start.point, end.point)
        bearing = bearing_deg(start.point, end.point)

        if weather is None:
            wind_factor = wave_factor = combined = 1.0
            insight = STANDARD_CONDITIONS
        else:
            wind = resistance_factor(
                bearing, weather.wind_direction, weather.wind_speed, "wind", self.model,
            )
            wave = resistance_factor(
                bearing, weather.wave_direction or 0.0, weather.wave_height or 0.0, "wave", self.model,
            )
            wind_factor, wave_factor = wind[0], wave[0]
            combined, insight = combine(wind, wave)

        speed = adjust_speed(base_speed, combined, self.model)
        fuel  = dist * fuel_rate * combined

        return VoyageLeg(
            index                = index,
            start_waypoint       = start,
            end_waypoint         = end,
            distance_nm          = dist,
            bearing_deg          = bearing,
            weather              = weather,
            wind_factor          = wind_factor,
            wave_factor          = wave_factor,
            combined_factor      = combined,
            base_speed_knots     = base_speed,
            adjusted_speed_knots = speed,
            duration_hours       = dist / speed,
            fuel_tons            = fuel,
            fuel_cost            = fuel * fuel_price,
            performance_insight  = insight,
        )

    # ── Helpers ───────────────────────────────────────────────────────────────

    async def _leg_weather(self, point) -> Optional[WeatherSnapshot]:
        lat, lon = point
        try:
            return await asyncio.wait_for(self.weather.fetch_marine(lat, lon), timeout=self.timeout_s)
        except Exception as exc:
            log.warning(f"Leg weather unavailable at [{lat:.4f}, {lon:.4f}]; using standard conditions: {exc!r}")
            return None

    @staticmethod
    def _summarise(legs: List[VoyageLeg], fuel_price: float) -> VoyageSummary:
        total_nm    = sum(l.distance_nm for l in legs)
        total_hours = sum(l.duration_hours for l in legs)
        total_fuel  = sum(l.fuel_tons for l in legs)

        return VoyageSummary(
            fuel_price_per_ton   = fuel_price,
            total_distance_nm    = total_nm,
            total_duration_hours = total_hours,
            total_duration_days  = total_hours / 24,
            total_fuel_tons      = total_fuel,
            total_fuel_cost      = total_fuel * fuel_price,
            average_fuel_per_nm  = total_fuel / total_nm if total_nm > 0 else 0.0,
            degraded_legs        = sum(1 for l in legs if l.weather is None),
            legs                 = legs,
        )

    @staticmethod
    def _require_positive(name: str, value) -> None:
        if value is None or value <= 0:
            raise ValidationError(f"{name} must be a positive number, got {value}")
