"""
VoyageWatch Alerts — Rule Engine
================================
AlertRuleEngine evaluates a WeatherSnapshot (plus an optional forecast)
against the ordered ALERT_RULES table and returns the triggered rules
sorted by urgency (priority 1 first).

ALERT_RULES is a static table of frozen records: predicate, message
formatter, recommendations and optional debounce window per rule type.
It is exposed module-level for the /rules endpoint.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from voyagewatch_common.models  import ForecastSnapshot, WeatherSnapshot
from voyagewatch_common.weather import (
    detect_cyclone,
    pressure_delta,
    sea_state,
    weather_condition,
    wind_chill,
)

log = logging.getLogger("alerts.rules")

Predicate = Callable[[WeatherSnapshot, Optional[ForecastSnapshot]], bool]
Formatter = Callable[[WeatherSnapshot, Optional[ForecastSnapshot]], str]


@dataclass(frozen=True)
class AlertRule:
    type:             str
    severity:         str            # info / warning / critical / emergency
    priority:         int            # 1 = most urgent
    category:         str
    condition:        Predicate
    message:          Formatter
    recommendations:  Tuple[str, ...]
    debounce_minutes: Optional[int] = None


@dataclass(frozen=True)
class TriggeredRule:
    rule:    AlertRule
    message: str

    @property
    def type(self) -> str:
        return self.rule.type

    @property
    def priority(self) -> int:
        return self.rule.priority

    @property
    def severity(self) -> str:
        return self.rule.severity


# ══════════════════════════════════════════════════════════════════════════════
# Message formatters
# ══════════════════════════════════════════════════════════════════════════════

def _sea_desc(w: WeatherSnapshot) -> str:
    return sea_state(w.wind_speed)[1]


def _pressure_message(w: WeatherSnapshot, f: Optional[ForecastSnapshot]) -> str:
    change = pressure_delta(w, f)
    if change is None:
        return "Rapid pressure change detected"
    sign = "+" if change > 0 else ""
    return f"📊 PRESSURE CHANGE: {sign}{change:.1f}hPa - Weather system approaching"


def _pressure_jump(w: WeatherSnapshot, f: Optional[ForecastSnapshot]) -> bool:
    change = pressure_delta(w, f)
    return change is not None and abs(change) > 3


# ══════════════════════════════════════════════════════════════════════════════
# Rule table
# ══════════════════════════════════════════════════════════════════════════════

ALERT_RULES: Tuple[AlertRule, ...] = (
    AlertRule(
        type             = "hurricane_force_winds",
        severity         = "emergency",
        priority         = 1,
        category         = "wind",
        condition        = lambda w, f: w.wind_speed >= 64,
        message          = lambda w, f: f"🚨 HURRICANE FORCE WINDS: {w.wind_speed:g} knots - {_sea_desc(w)}",
        recommendations  = (
            "SEEK IMMEDIATE SHELTER",
            "Avoid all vessel operations",
            "Emergency protocols in effect",
            "Monitor emergency channels",
        ),
        debounce_minutes = 30,
    ),
    AlertRule(
        type             = "cyclone_threat",
        severity         = "emergency",
        priority         = 1,
        category         = "cyclone",
        condition        = lambda w, f: detect_cyclone(w, f),
        message          = lambda w, f: (
            f"🌀 CYCLONE CONDITIONS DETECTED: Pressure {w.pressure:g}hPa, Winds {w.wind_speed:g}kts"
        ),
        recommendations  = (
            "Evacuate area immediately",
            "Secure all equipment",
            "Follow emergency evacuation routes",
            "Contact maritime authorities",
        ),
        debounce_minutes = 60,
    ),
    AlertRule(
        type             = "violent_storm",
        severity         = "critical",
        priority         = 2,
        category         = "wind",
        condition        = lambda w, f: 56 <= w.wind_speed < 64,
        message          = lambda w, f: f"⛈️ VIOLENT STORM: {w.wind_speed:g} knots - Exceptionally dangerous seas",
        recommendations  = (
            "Seek safe harbor immediately",
            "Avoid all non-essential operations",
            "Secure all loose equipment",
            "Monitor weather updates constantly",
        ),
        debounce_minutes = 45,
    ),
    AlertRule(
        type             = "zero_visibility",
        severity         = "critical",
        priority         = 1,
        category         = "visibility",
        condition        = lambda w, f: w.visibility < 100,
        message          = lambda w, f: f"🌫️ ZERO VISIBILITY: {w.visibility:g}m - Navigation extremely hazardous",
        recommendations  = (
            "Stop all vessel movement",
            "Use radar navigation only",
            "Sound fog signals",
            "Post additional lookouts",
        ),
        debounce_minutes = 30,
    ),
    AlertRule(
        type             = "extreme_cold_exposure",
        severity         = "critical",
        priority         = 2,
        category         = "temperature",
        condition        = lambda w, f: (
            wind_chill(w.temperature, w.wind_speed) < -20
            or (w.temperature < 0 and w.wind_speed > 20)
        ),
        message          = lambda w, f: (
            f"🥶 EXTREME COLD: Wind chill {wind_chill(w.temperature, w.wind_speed):.1f}°C - Frostbite risk"
        ),
        recommendations  = (
            "Limit crew exposure time",
            "Ensure proper cold weather gear",
            "Monitor for hypothermia symptoms",
            "Maintain heated areas",
        ),
    ),
    AlertRule(
        type             = "gale_force_winds",
        severity         = "warning",
        priority         = 3,
        category         = "wind",
        condition        = lambda w, f: 34 <= w.wind_speed < 48,
        message          = lambda w, f: f"💨 GALE FORCE WINDS: {w.wind_speed:g} knots - {_sea_desc(w)}",
        recommendations  = (
            "Reduce vessel speed",
            "Secure deck equipment",
            "Brief crew on safety procedures",
            "Consider course adjustments",
        ),
    ),
    AlertRule(
        type             = "dense_fog",
        severity         = "warning",
        priority         = 2,
        category         = "visibility",
        condition        = lambda w, f: 100 <= w.visibility < 1000,
        message          = lambda w, f: f"🌫️ DENSE FOG: Visibility {w.visibility:g}m - Navigation restricted",
        recommendations  = (
            "Reduce speed significantly",
            "Use fog signals",
            "Maintain radar watch",
            "Post additional lookouts",
        ),
    ),
    AlertRule(
        type             = "severe_thunderstorm",
        severity         = "warning",
        priority         = 2,
        category         = "precipitation",
        condition        = lambda w, f: (
            w.weather_code >= 95 and (w.precipitation > 15 or w.wind_speed > 25)
        ),
        message          = lambda w, f: (
            f"⛈️ SEVERE THUNDERSTORM: {weather_condition(w.weather_code)} - Lightning risk"
        ),
        recommendations  = (
            "Avoid metal structures on deck",
            "Secure all electronics",
            "Monitor for waterspouts",
            "Prepare for sudden wind shifts",
        ),
    ),
    AlertRule(
        type             = "rapid_pressure_change",
        severity         = "warning",
        priority         = 3,
        category         = "pressure",
        condition        = _pressure_jump,
        message          = _pressure_message,
        recommendations  = (
            "Monitor weather closely",
            "Prepare for weather changes",
            "Check equipment security",
            "Review emergency procedures",
        ),
    ),
    AlertRule(
        type             = "heavy_seas",
        severity         = "warning",
        priority         = 3,
        category         = "marine",
        condition        = lambda w, f: sea_state(w.wind_speed)[0] >= 6,
        message          = lambda w, f: f"🌊 HEAVY SEAS: {_sea_desc(w)} - Difficult conditions",
        recommendations  = (
            "Reduce speed for crew safety",
            "Secure all moveable items",
            "Brief crew on heavy weather procedures",
            "Monitor vessel stress",
        ),
    ),
    AlertRule(
        type             = "moderate_conditions",
        severity         = "info",
        priority         = 4,
        category         = "marine",
        condition        = lambda w, f: 4 <= sea_state(w.wind_speed)[0] <= 5,
        message          = lambda w, f: f"ℹ️ MODERATE CONDITIONS: {_sea_desc(w)}",
        recommendations  = (
            "Standard precautions apply",
            "Monitor weather updates",
            "Ensure crew safety awareness",
        ),
    ),
    AlertRule(
        type             = "favorable_conditions",
        severity         = "info",
        priority         = 5,
        category         = "marine",
        condition        = lambda w, f: (
            sea_state(w.wind_speed)[0] <= 3
            and w.visibility > 5000
            and w.precipitation < 1
        ),
        message          = lambda w, f: "☀️ FAVORABLE CONDITIONS: Good visibility, calm seas",
        recommendations  = (
            "Optimal conditions for operations",
            "Consider planned maintenance",
            "Good time for crew training",
        ),
    ),
)


# ══════════════════════════════════════════════════════════════════════════════
# Engine
# ══════════════════════════════════════════════════════════════════════════════

class AlertRuleEngine:
    """Runs every rule of a table against one snapshot."""

    def __init__(self, rules: Tuple[AlertRule, ...] = ALERT_RULES):
        self.rules = rules

    def evaluate(
        self,
        weather:  WeatherSnapshot,
        forecast: Optional[ForecastSnapshot] = None,
    ) -> List[TriggeredRule]:
        """
        Return the triggered rules, stably sorted ascending by priority.
        A predicate that raises counts as not triggered; a formatter that
        raises falls back to a generic message naming the rule.
        """
        triggered: List[TriggeredRule] = []

        for rule in self.rules:
            try:
                hit = rule.condition(weather, forecast)
            except Exception as exc:
                log.error(f"Rule {rule.type} predicate failed: {exc!r}")
                continue
            if not hit:
                continue
            triggered.append(TriggeredRule(rule=rule, message=self._format(rule, weather, forecast)))

        triggered.sort(key=lambda t: t.priority)
        if triggered:
            log.info(
                f"{len(triggered)} rule(s) triggered: "
                + ", ".join(t.type for t in triggered)
            )
        return triggered

    # ── Helpers ───────────────────────────────────────────────────────────────

    @staticmethod
    def _format(rule: AlertRule, weather, forecast) -> str:
        try:
            return rule.message(weather, forecast)
        except Exception as exc:
            log.error(f"Rule {rule.type} message formatter failed: {exc!r}")
            return f"Weather alert: {rule.type.replace('_', ' ')}"
