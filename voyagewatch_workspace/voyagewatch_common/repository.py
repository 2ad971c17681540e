"""
VoyageWatch — Voyage / Vessel Repository
========================================
Read-only lookups supplied by the surrounding CRUD layer. Both methods
return None when the record does not exist; the analyzer turns that into
NotFoundError.

The JSON file layout accepted by JsonVoyageRepository:

    {
      "vessels": [{"id": "v1", "name": "...", "eco_speed_knots": 12,
                   "fuel_consumption_rate": 0.2}],
      "voyages": [{"id": "voy1", "vessel_id": "v1",
                   "route_waypoints": [{"latitude": 0, "longitude": 0}, ...]}]
    }
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Optional

from .models import Vessel, Voyage

log = logging.getLogger("common.repository")


class InMemoryVoyageRepository:

    def __init__(self, vessels: Iterable[Vessel] = (), voyages: Iterable[Voyage] = ()):
        self._vessels: Dict[str, Vessel] = {v.id: v for v in vessels}
        self._voyages: Dict[str, Voyage] = {v.id: v for v in voyages}

    def add_vessel(self, vessel: Vessel) -> None:
        self._vessels[vessel.id] = vessel

    def add_voyage(self, voyage: Voyage) -> None:
        self._voyages[voyage.id] = voyage

    async def get_voyage(self, voyage_id: str) -> Optional[Voyage]:
        return self._voyages.get(voyage_id)

    async def get_vessel(self, vessel_id: str) -> Optional[Vessel]:
        return self._vessels.get(vessel_id)


class JsonVoyageRepository(InMemoryVoyageRepository):
    """Loads vessels and voyages once from a JSON export."""

    def __init__(self, path: str):
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        super().__init__(
            vessels=[Vessel.model_validate(v) for v in raw.get("vessels", [])],
            voyages=[Voyage.model_validate(v) for v in raw.get("voyages", [])],
        )
        log.info(f"Loaded {len(self._vessels)} vessels and {len(self._voyages)} voyages from {path}")


def build_repository(path: Optional[str] = None):
    if path:
        return JsonVoyageRepository(path)
    return InMemoryVoyageRepository()
