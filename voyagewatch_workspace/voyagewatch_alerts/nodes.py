"""
VoyageWatch Alerts — LangGraph Node Functions

Graph flow:
  validate_position
       │ (error) ──► END
       ▼
  check_location_change
       │ (skipped) ──► END
       ▼
  fetch_weather            realtime + forecast, concurrently
       │ (skipped) ──► END
       ▼
  evaluate_rules
       ▼
  dispatch_alerts
       ▼
      END

Collaborators arrive through `config["configurable"]`:
  detector    LocationChangeDetector
  weather     OpenMeteoClient (or any object with fetch_realtime / fetch_forecast)
  engine      AlertRuleEngine
  dispatcher  AlertDispatcher
"""

import asyncio
import logging
from typing import Any, Dict

from langchain_core.messages  import AIMessage, HumanMessage
from langchain_core.runnables import RunnableConfig

from voyagewatch_common.errors import ValidationError
from voyagewatch_common.geo    import is_valid_coordinate

from .location import location_key
from .state    import PositionState

log = logging.getLogger("alerts.nodes")

FORECAST_DAYS = 1


def _deps(config: RunnableConfig) -> Dict[str, Any]:
    return (config or {}).get("configurable", {})


def parse_position_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a raw position report. Every field is required: an empty id or
    a missing coordinate is rejected. 0.0 is a valid latitude or longitude.
    """
    if not isinstance(event, dict):
        raise ValidationError("Position event must be an object")

    recipient_id = event.get("recipientId") or event.get("captainId")
    voyage_id    = event.get("voyageId")    or event.get("voyage_id")
    lat, lon     = event.get("lat"), event.get("lon")

    if not recipient_id or not voyage_id or lat is None or lon is None:
        raise ValidationError("Invalid location update: recipientId, voyageId, lat and lon are required")

    try:
        lat, lon = float(lat), float(lon)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Coordinates must be numeric: {exc}") from exc

    if not is_valid_coordinate(lat, lon):
        raise ValidationError(f"Coordinates out of range: [{lat}, {lon}]")

    return {"recipient_id": str(recipient_id), "voyage_id": str(voyage_id), "lat": lat, "lon": lon}


# ─────────────────────────────────────────────────────────────────────────────
# NODE 1 — validate_position
# ─────────────────────────────────────────────────────────────────────────────

async def validate_position_node(state: PositionState) -> PositionState:
    """Reject malformed reports before any cache or network access."""
    try:
        position = parse_position_event(state.get("event", {}))
    except ValidationError as exc:
        log.warning(f"Dropping position event: {exc}")
        return {**state, "status": "error", "errors": [str(exc)]}

    msg = HumanMessage(
        content=(
            f"[validate_position] ✅ {position['recipient_id']} at "
            f"[{position['lat']:.4f}, {position['lon']:.4f}] on voyage {position['voyage_id']}"
        )
    )
    return {**state, **position, "status": "processing", "messages": [msg], "errors": []}


# ─────────────────────────────────────────────────────────────────────────────
# NODE 2 — check_location_change
# ─────────────────────────────────────────────────────────────────────────────

async def check_location_change_node(state: PositionState, config: RunnableConfig) -> PositionState:
    """Claim the report when the vessel moved or enough time passed."""
    detector = _deps(config)["detector"]
    key      = location_key(state["recipient_id"])

    significant = await detector.claim_if_significant(key, state["lat"], state["lon"])
    if not significant:
        log.debug(f"No significant location change for {state['recipient_id']}")
        return {**state, "significant": False, "status": "skipped"}

    msg = AIMessage(content=f"[check_location_change] significant change for {state['recipient_id']}")
    return {**state, "significant": True, "messages": state.get("messages", []) + [msg]}


# ─────────────────────────────────────────────────────────────────────────────
# NODE 3 — fetch_weather
# ─────────────────────────────────────────────────────────────────────────────

async def fetch_weather_node(state: PositionState, config: RunnableConfig) -> PositionState:
    """
    Fetch realtime conditions and the short forecast concurrently. No
    realtime snapshot means nothing to evaluate, and the location claim is
    released so the next report is evaluated; a missing forecast only
    disables the forecast-based rules.
    """
    deps     = _deps(config)
    provider = deps["weather"]
    lat, lon = state["lat"], state["lon"]

    realtime, forecast = await asyncio.gather(
        provider.fetch_realtime(lat, lon),
        provider.fetch_forecast(lat, lon, FORECAST_DAYS),
        return_exceptions=True,
    )

    if isinstance(forecast, Exception):
        log.warning(f"Forecast unavailable at [{lat}, {lon}]: {forecast!r}")
        forecast = None
    elif isinstance(forecast, BaseException):
        raise forecast

    if isinstance(realtime, Exception):
        log.warning(f"Realtime weather unavailable at [{lat}, {lon}]; skipping evaluation: {realtime!r}")
        await deps["detector"].release(location_key(state["recipient_id"]))
        return {
            **state,
            "weather":  None,
            "forecast": forecast,
            "status":   "skipped",
            "errors":   state.get("errors", []) + [str(realtime)],
        }
    if isinstance(realtime, BaseException):
        raise realtime

    msg = AIMessage(
        content=(
            f"[fetch_weather] wind {realtime.wind_speed:g} kt, pressure {realtime.pressure:g} hPa, "
            f"visibility {realtime.visibility:g} m, forecast {'ok' if forecast else 'n/a'}"
        )
    )
    return {
        **state,
        "weather":  realtime,
        "forecast": forecast,
        "messages": state.get("messages", []) + [msg],
    }


# ─────────────────────────────────────────────────────────────────────────────
# NODE 4 — evaluate_rules
# ─────────────────────────────────────────────────────────────────────────────

async def evaluate_rules_node(state: PositionState, config: RunnableConfig) -> PositionState:
    engine    = _deps(config)["engine"]
    triggered = engine.evaluate(state["weather"], state.get("forecast"))

    msg = AIMessage(content=f"[evaluate_rules] {len(triggered)} rule(s) triggered")
    return {
        **state,
        "triggered": triggered,
        "status":    "evaluated",
        "messages":  state.get("messages", []) + [msg],
    }


# ─────────────────────────────────────────────────────────────────────────────
# NODE 5 — dispatch_alerts
# ─────────────────────────────────────────────────────────────────────────────

async def dispatch_alerts_node(state: PositionState, config: RunnableConfig) -> PositionState:
    dispatcher = _deps(config)["dispatcher"]
    alerts = await dispatcher.dispatch(
        state.get("triggered", []),
        voyage_id    = state["voyage_id"],
        recipient_id = state["recipient_id"],
        weather      = state.get("weather"),
    )

    msg = AIMessage(content=f"[dispatch_alerts] {len(alerts)} alert(s) sent to {state['recipient_id']}")
    return {
        **state,
        "alerts":   alerts,
        "status":   "complete",
        "messages": state.get("messages", []) + [msg],
    }
