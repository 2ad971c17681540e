"""
VoyageWatch Alerts — Dispatcher
===============================
Turns triggered rules into Alert records: debounce, persist, push.

  DebounceRegistry   process-wide last-sent map per rule type
  AlertDispatcher    dispatch / send_demo_alert / recent_alerts

Persistence and push are best-effort. A failure in either is logged and
never stops the remaining alerts of the batch.
"""

import logging
import random
import threading
import time
from datetime import timedelta
from typing import Callable, Dict, List, Optional, Sequence

from voyagewatch_common        import config
from voyagewatch_common.models import Alert, WeatherSnapshot

from .rules import TriggeredRule

log = logging.getLogger("alerts.dispatcher")

NEW_ALERT_EVENT = "new-alert"
_URGENT = ("critical", "emergency")


# ══════════════════════════════════════════════════════════════════════════════
# Debounce
# ══════════════════════════════════════════════════════════════════════════════

class DebounceRegistry:
    """
    Last-sent timestamps keyed by rule type, split across lock shards so
    unrelated rule types never contend. Resets with the process.
    """

    SHARDS = 16

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock  = clock
        self._shards: List[Dict[str, float]] = [{} for _ in range(self.SHARDS)]
        self._locks:  List[threading.Lock]   = [threading.Lock() for _ in range(self.SHARDS)]

    def should_send(self, alert_type: str, debounce_minutes: Optional[float] = None) -> bool:
        """True (and the send is recorded) when outside the debounce window."""
        if not debounce_minutes:
            return True

        idx = hash(alert_type) % self.SHARDS
        with self._locks[idx]:
            now       = self._clock()
            last_sent = self._shards[idx].get(alert_type)
            if last_sent is not None and now - last_sent < debounce_minutes * 60:
                return False
            self._shards[idx][alert_type] = now
            return True

    def reset(self) -> None:
        for lock, shard in zip(self._locks, self._shards):
            with lock:
                shard.clear()


DEBOUNCE = DebounceRegistry()


# ══════════════════════════════════════════════════════════════════════════════
# Demo alerts
# ══════════════════════════════════════════════════════════════════════════════

DEMO_ALERTS = (
    {
        "alert_type":      "demo_hurricane_warning",
        "severity":        "emergency",
        "priority":        1,
        "category":        "wind",
        "message":         "🌀 DEMO: Hurricane force winds approaching - 70 knots expected",
        "recommendations": ["Seek immediate shelter", "Emergency protocols active"],
    },
    {
        "alert_type":      "demo_dense_fog",
        "severity":        "warning",
        "priority":        2,
        "category":        "visibility",
        "message":         "🌫️ DEMO: Dense fog reducing visibility to 200m",
        "recommendations": ["Reduce speed", "Use fog signals", "Post lookouts"],
    },
    {
        "alert_type":      "demo_cyclone_conditions",
        "severity":        "emergency",
        "priority":        1,
        "category":        "cyclone",
        "message":         "🌀 DEMO: Cyclone conditions detected - Pressure 975hPa",
        "recommendations": ["Evacuate area", "Contact authorities", "Secure vessel"],
    },
    {
        "alert_type":      "demo_favorable_conditions",
        "severity":        "info",
        "priority":        5,
        "category":        "marine",
        "message":         "☀️ DEMO: Excellent conditions - Calm seas, good visibility",
        "recommendations": ["Optimal for operations", "Consider maintenance"],
    },
)


def weather_data(weather: Optional[WeatherSnapshot]) -> Dict[str, float]:
    """Subset of the snapshot stored with an alert."""
    if weather is None:
        return {}
    return {
        "temperature":   weather.temperature,
        "windSpeed":     weather.wind_speed,
        "pressure":      weather.pressure,
        "visibility":    weather.visibility,
        "precipitation": weather.precipitation,
    }


# ══════════════════════════════════════════════════════════════════════════════
# Dispatcher
# ══════════════════════════════════════════════════════════════════════════════

class AlertDispatcher:

    def __init__(
        self,
        store,
        channel,
        debounce:  DebounceRegistry = DEBOUNCE,
        demo_mode: bool = config.DEMO_MODE,
        chooser:   Callable[[Sequence], dict] = random.choice,
    ):
        self.store     = store
        self.channel   = channel
        self.debounce  = debounce
        self.demo_mode = demo_mode
        self._choose   = chooser

    async def dispatch(
        self,
        triggered:    Sequence[TriggeredRule],
        voyage_id:    str,
        recipient_id: str,
        weather:      Optional[WeatherSnapshot] = None,
    ) -> List[Alert]:
        """Debounce, persist and push each triggered rule in priority order."""
        sent: List[Alert] = []

        for item in sorted(triggered, key=lambda t: t.priority):
            rule = item.rule
            if not self.debounce.should_send(rule.type, rule.debounce_minutes):
                log.info(f"Alert {rule.type} debounced for voyage {voyage_id}")
                continue

            alert = Alert(
                voyage_id       = voyage_id,
                recipient_id    = recipient_id,
                alert_type      = rule.type,
                message         = item.message,
                severity        = rule.severity,
                priority        = rule.priority,
                category        = rule.category,
                recommendations = list(rule.recommendations),
                weather_data    = weather_data(weather),
            )
            await self._deliver(alert)
            sent.append(alert)

        return sent

    async def send_demo_alert(self, voyage_id: str, recipient_id: str) -> Optional[Alert]:
        """Persist and push one canned alert. No-op outside demo mode."""
        if not self.demo_mode:
            log.debug("Demo alert requested while demo mode is off")
            return None

        template = self._choose(DEMO_ALERTS)
        alert = Alert(voyage_id=voyage_id, recipient_id=recipient_id, **template)
        await self._deliver(alert)
        return alert

    async def recent_alerts(
        self,
        voyage_id:   str,
        window_days: int = config.RECENT_ALERT_WINDOW_DAYS,
    ) -> List[Alert]:
        try:
            return await self.store.query_recent(voyage_id, timedelta(days=window_days))
        except Exception as exc:
            log.error(f"Failed to load recent alerts for voyage {voyage_id}: {exc}")
            return []

    # ── Helpers ───────────────────────────────────────────────────────────────

    async def _deliver(self, alert: Alert) -> None:
        level = logging.WARNING if alert.severity in _URGENT else logging.INFO
        log.log(
            level,
            f"{alert.severity.upper()} alert {alert.alert_type} → "
            f"recipient {alert.recipient_id} (voyage {alert.voyage_id})",
        )

        try:
            await self.store.insert(alert)
        except Exception as exc:
            log.error(f"Failed to persist alert {alert.id}: {exc}")

        try:
            await self.channel.emit(alert.recipient_id, NEW_ALERT_EVENT, alert.push_payload())
        except Exception as exc:
            log.error(f"Failed to push alert {alert.id}: {exc}")
