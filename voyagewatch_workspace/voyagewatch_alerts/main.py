"""
VoyageWatch — Navigational Alert Service
FastAPI entry point

Endpoints
─────────
GET  /                                   Health check (weather API + cache)
POST /api/v1/alerts/position             Position report, processed in the background
WS   /ws/{recipient_id}                  Captain room: "update-location" in, "new-alert" out
GET  /api/v1/alerts/{voyage_id}/recent   Recent alerts, most urgent first
POST /api/v1/alerts/demo                 Canned demo alert (DEMO mode only)
GET  /api/v1/alerts/rules                Rule table
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Optional, Set

import uvicorn
from fastapi import BackgroundTasks, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from voyagewatch_common        import config
from voyagewatch_common.errors import ValidationError

from .nodes   import parse_position_event
from .rules   import ALERT_RULES
from .service import AlertServices, build_services

# ── Logging ───────────────────────────────────────────────────────────────────

_handlers = [logging.StreamHandler()]
if config.LOG_DIR:
    Path(config.LOG_DIR).mkdir(parents=True, exist_ok=True)
    _handlers.append(logging.FileHandler(Path(config.LOG_DIR) / "alerts.log"))

logging.basicConfig(
    level=logging.INFO,
    handlers=_handlers,
    format='{"time":"%(asctime)s","level":"%(levelname)s","msg":"%(message)s"}',
)
log = logging.getLogger("alerts")


# ── FastAPI app ───────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await app.state.services.aclose()


app = FastAPI(
    title="VoyageWatch — Navigational Alert Service",
    description=(
        "LangGraph-powered alert pipeline: position change detection, "
        "Open-Meteo weather, rule evaluation, debounced push to captains."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.services = build_services()
log.info("Alert pipeline graph compiled successfully.")

# Strong references to in-flight position tasks
_tasks: Set[asyncio.Task] = set()


def _services(request: Request) -> AlertServices:
    return request.app.state.services


async def _process_safely(services: AlertServices, event: Dict[str, Any]) -> None:
    try:
        await services.process_position(event)
    except Exception as exc:
        log.error(f"Position processing failed: {exc!r}")


# ── Pydantic models ───────────────────────────────────────────────────────────

class PositionIn(BaseModel):
    recipientId: Optional[str]   = None
    voyageId:    Optional[str]   = None
    lat:         Optional[float] = None
    lon:         Optional[float] = None


class DemoAlertIn(BaseModel):
    recipientId: str
    voyageId:    str


# ── Endpoints ─────────────────────────────────────────────────────────────────

@app.get("/")
async def health(request: Request):
    weather_health = await _services(request).weather.health()
    return {
        "service":      "Navigational Alert Service",
        "version":      "1.0.0",
        "status":       "operational" if all(weather_health.values()) else "degraded",
        "framework":    "LangGraph",
        "weather":      weather_health,
        "demo_mode":    _services(request).dispatcher.demo_mode,
        "connections":  getattr(_services(request).channel, "connection_count", 0),
    }


@app.post("/api/v1/alerts/position", status_code=202)
async def report_position(position: PositionIn, background: BackgroundTasks, request: Request):
    """Accept a position report; weather evaluation runs after the response."""
    event = position.model_dump()
    try:
        parse_position_event(event)
    except ValidationError as exc:
        log.warning(f"Rejected position report: {exc}")
        raise HTTPException(status_code=422, detail=str(exc))

    background.add_task(_process_safely, _services(request), event)
    return {"status": "accepted"}


@app.websocket("/ws/{recipient_id}")
async def captain_socket(websocket: WebSocket, recipient_id: str):
    """
    One captain's live connection. Incoming frames:
        {"event": "update-location", "data": {"voyageId", "lat", "lon"}}
    Alerts are pushed back as {"event": "new-alert", "data": {...}, "sentAt"}.
    """
    services = websocket.app.state.services
    channel  = services.channel

    await websocket.accept()
    await channel.join(recipient_id, websocket)
    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except ValueError as exc:
                log.warning(f"Ignoring malformed frame from {recipient_id}: {exc}")
                continue

            if not isinstance(frame, dict) or frame.get("event") != "update-location":
                log.debug(f"Ignoring frame from {recipient_id}: {frame!r}")
                continue

            data = dict(frame.get("data") or {})
            data["recipientId"] = recipient_id

            task = asyncio.create_task(_process_safely(services, data))
            _tasks.add(task)
            task.add_done_callback(_tasks.discard)
    except WebSocketDisconnect:
        log.info(f"Recipient {recipient_id} disconnected")
    finally:
        await channel.leave(recipient_id, websocket)


@app.get("/api/v1/alerts/{voyage_id}/recent")
async def recent_alerts(voyage_id: str, request: Request):
    alerts = await _services(request).dispatcher.recent_alerts(voyage_id)
    return {
        "voyageId": voyage_id,
        "count":    len(alerts),
        "alerts":   [a.model_dump(mode="json") for a in alerts],
    }


@app.post("/api/v1/alerts/demo")
async def demo_alert(body: DemoAlertIn, request: Request):
    """Send one canned alert to a captain. Only available with DEMO enabled."""
    alert = await _services(request).dispatcher.send_demo_alert(body.voyageId, body.recipientId)
    if alert is None:
        raise HTTPException(status_code=403, detail="Demo mode is disabled")
    return {"status": "sent", "alert": alert.model_dump(mode="json")}


@app.get("/api/v1/alerts/rules")
def get_rules():
    """Return the rule table without its callables."""
    return {
        "rules": [
            {
                "type":             r.type,
                "severity":         r.severity,
                "priority":         r.priority,
                "category":         r.category,
                "recommendations":  list(r.recommendations),
                "debounce_minutes": r.debounce_minutes,
            }
            for r in ALERT_RULES
        ]
    }


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    port = int(os.getenv("PORT", 3020))
    uvicorn.run("voyagewatch_alerts.main:app", host="0.0.0.0", port=port, reload=False)
