"""
VoyageWatch — Voyage Cost Service
=================================
FastAPI micro-service exposing the voyage leg cost analyzer.
Port 3021

Endpoints
---------
GET  /                                   Health + capabilities
GET  /api/v1/costs/{voyage_id}           Voyage summary + legs (?fuel_price=<positive>)
GET  /api/v1/costs/model                 Active resistance model constants
"""

import logging
import os
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from voyagewatch_common                import config
from voyagewatch_common.cache          import build_cache
from voyagewatch_common.errors         import NotFoundError, ValidationError
from voyagewatch_common.repository     import build_repository
from voyagewatch_common.weather_client import OpenMeteoClient

from .analyzer import VoyageLegAnalyzer

# ── Logging ───────────────────────────────────────────────────────────────────
_handlers = [logging.StreamHandler()]
if config.LOG_DIR:
    Path(config.LOG_DIR).mkdir(parents=True, exist_ok=True)
    _handlers.append(logging.FileHandler(Path(config.LOG_DIR) / "costing.log"))

logging.basicConfig(
    level=logging.INFO,
    handlers=_handlers,
    format='{"time":"%(asctime)s","level":"%(levelname)s","msg":"%(message)s"}',
)
log = logging.getLogger("costing")


# ── FastAPI app ───────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    closer = getattr(app.state.analyzer.weather, "aclose", None)
    if closer is not None:
        await closer()


app = FastAPI(
    title="VoyageWatch — Voyage Cost Service",
    description=(
        "Per-leg fuel and duration estimates adjusted for head, beam and "
        "following wind and waves at each leg midpoint."
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

app.state.analyzer = VoyageLegAnalyzer(
    weather    = OpenMeteoClient(cache=build_cache(config.REDIS_URL)),
    repository = build_repository(config.VOYAGE_DATA_PATH),
)


# ── Endpoints ─────────────────────────────────────────────────────────────────

@app.get("/")
def health():
    return {
        "service":      "Voyage Cost Service",
        "version":      "1.0.0",
        "status":       "operational",
        "capabilities": [
            "leg_distance_bearing",
            "midpoint_marine_weather",
            "wind_wave_resistance",
            "adjusted_speed_duration",
            "fuel_cost_summary",
        ],
    }


@app.get("/api/v1/costs/model")
def get_resistance_model(request: Request):
    return asdict(request.app.state.analyzer.model)


@app.get("/api/v1/costs/{voyage_id}")
async def voyage_costs(
    voyage_id: str,
    request: Request,
    fuel_price: float = Query(..., description="Fuel price per ton"),
):
    """Weather-adjusted cost analysis of a stored voyage."""
    log.info(f"Cost analysis requested: voyage={voyage_id} fuel_price={fuel_price}")
    try:
        summary = await request.app.state.analyzer.analyze_voyage(voyage_id, fuel_price)
    except NotFoundError as exc:
        log.warning(f"Cost analysis not found: {exc}")
        raise HTTPException(status_code=404, detail=str(exc))
    except ValidationError as exc:
        log.warning(f"Cost analysis rejected: {exc}")
        raise HTTPException(status_code=422, detail=str(exc))
    except Exception as exc:
        log.error(f"Cost analysis error for voyage {voyage_id}: {exc!r}")
        raise HTTPException(status_code=500, detail="Internal Server Error")

    log.info(
        f"Voyage {voyage_id}: {summary.total_distance_nm:.1f} nm, "
        f"{summary.total_fuel_tons:.2f} t, degraded legs={summary.degraded_legs}"
    )
    return summary.model_dump(mode="json")


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    port = int(os.getenv("PORT", 3021))
    uvicorn.run("voyagewatch_costing.main:app", host="0.0.0.0", port=port, reload=False)
