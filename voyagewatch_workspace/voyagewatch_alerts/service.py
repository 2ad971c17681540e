"""
VoyageWatch Alerts — Service Wiring
===================================
AlertServices bundles the collaborators of the alert pipeline and runs
one position report through the compiled graph. build_services() wires
the configured backends; tests pass their own.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from voyagewatch_common                import config
from voyagewatch_common.cache          import build_cache
from voyagewatch_common.push           import WebSocketPushChannel
from voyagewatch_common.store          import build_store
from voyagewatch_common.weather_client import OpenMeteoClient

from .dispatcher import DEBOUNCE, AlertDispatcher, DebounceRegistry
from .graph      import build_alert_pipeline
from .location   import LocationChangeDetector
from .rules      import AlertRuleEngine
from .state      import PositionState

log = logging.getLogger("alerts.service")


@dataclass
class AlertServices:
    cache:      Any
    store:      Any
    channel:    Any
    weather:    Any
    detector:   LocationChangeDetector
    engine:     AlertRuleEngine
    dispatcher: AlertDispatcher
    pipeline:   Any = field(default_factory=build_alert_pipeline)

    def configurable(self) -> Dict[str, Any]:
        return {
            "detector":   self.detector,
            "weather":    self.weather,
            "engine":     self.engine,
            "dispatcher": self.dispatcher,
        }

    async def process_position(self, event: Dict[str, Any]) -> PositionState:
        """Run one position report through the pipeline and return the final state."""
        initial_state: PositionState = {
            "event":    event,
            "messages": [],
            "errors":   [],
            "status":   "init",
            "alerts":   [],
        }
        result = await self.pipeline.ainvoke(
            initial_state,
            config={"configurable": self.configurable()},
        )
        log.info(
            f"Position processed: status={result.get('status')} "
            f"alerts={len(result.get('alerts', []))}"
        )
        return result

    async def aclose(self) -> None:
        closer = getattr(self.weather, "aclose", None)
        if closer is not None:
            await closer()
        closer = getattr(self.cache, "close", None)
        if closer is not None:
            await closer()


def build_services(
    cache=None,
    store=None,
    channel=None,
    weather=None,
    debounce: DebounceRegistry = DEBOUNCE,
    demo_mode: Optional[bool] = None,
) -> AlertServices:
    cache   = cache   if cache   is not None else build_cache(config.REDIS_URL)
    store   = store   if store   is not None else build_store(config.ALERT_DB_PATH)
    channel = channel if channel is not None else WebSocketPushChannel()
    weather = weather if weather is not None else OpenMeteoClient(cache=cache)

    return AlertServices(
        cache      = cache,
        store      = store,
        channel    = channel,
        weather    = weather,
        detector   = LocationChangeDetector(cache),
        engine     = AlertRuleEngine(),
        dispatcher = AlertDispatcher(
            store,
            channel,
            debounce  = debounce,
            demo_mode = config.DEMO_MODE if demo_mode is None else demo_mode,
        ),
    )
