"""
VoyageWatch Alerts — Location Change Detector
=============================================
Decides whether a position report is far enough (or late enough) from the
vessel's last checked position to warrant a fresh weather evaluation.

Cache entry, key `captain:{recipient_id}:location`:
    {"lat": float, "lon": float, "lastCheckedAt": epoch seconds}
"""

import asyncio
import logging
import math
import time
from typing import Callable, List

from voyagewatch_common        import config
from voyagewatch_common.geo    import distance_km

log = logging.getLogger("alerts.location")

_LOCK_SHARDS = 16


def location_key(recipient_id: str) -> str:
    return f"captain:{recipient_id}:location"


class LocationChangeDetector:

    def __init__(
        self,
        cache,
        distance_threshold_km: float = config.LOCATION_DISTANCE_THRESHOLD_KM,
        time_threshold_min:    float = config.LOCATION_TIME_THRESHOLD_MIN,
        ttl_seconds:           int   = config.LOCATION_TTL_S,
        clock: Callable[[], float]   = time.time,
    ):
        self.cache                 = cache
        self.distance_threshold_km = distance_threshold_km
        self.time_threshold_min    = time_threshold_min
        self.ttl_seconds           = ttl_seconds
        self._clock                = clock
        self._locks: List[asyncio.Lock] = [asyncio.Lock() for _ in range(_LOCK_SHARDS)]

    # ── Public API ────────────────────────────────────────────────────────────

    async def is_significant_change(
        self,
        key: str,
        new_lat: float,
        new_lon: float,
        distance_threshold_km: float = None,
        time_threshold_min:    float = None,
    ) -> bool:
        """
        True when there is no cached position, or the vessel moved at least
        the distance threshold, or at least the time threshold has elapsed.
        Fails open when the cache cannot be read.
        """
        distance_threshold_km = self.distance_threshold_km if distance_threshold_km is None else distance_threshold_km
        time_threshold_min    = self.time_threshold_min    if time_threshold_min    is None else time_threshold_min

        try:
            cached = await self.cache.get(key)
        except Exception as exc:
            log.error(f"Location cache read failed for {key}: {exc}")
            return True

        if not cached:
            return True

        last_checked = cached.get("lastCheckedAt")
        if last_checked is None:
            elapsed_min = math.inf
        else:
            elapsed_min = (self._clock() - float(last_checked)) / 60.0

        moved_km = distance_km((cached["lat"], cached["lon"]), (new_lat, new_lon))

        significant = moved_km >= distance_threshold_km or elapsed_min >= time_threshold_min
        log.debug(
            f"{key}: moved {moved_km:.3f} km, {elapsed_min:.1f} min since last check "
            f"→ {'significant' if significant else 'skip'}"
        )
        return significant

    async def record_position(self, key: str, lat: float, lon: float) -> None:
        entry = {"lat": lat, "lon": lon, "lastCheckedAt": self._clock()}
        await self.cache.set(key, entry, self.ttl_seconds)

    async def claim_if_significant(self, key: str, lat: float, lon: float) -> bool:
        """
        Check-then-record under the key's lock shard. Concurrent reports for
        one vessel cannot both claim. The position is written only on a
        significant change; a failed write is logged and the claim stands.
        """
        async with self._lock_for(key):
            if not await self.is_significant_change(key, lat, lon):
                return False
            try:
                await self.record_position(key, lat, lon)
            except Exception as exc:
                log.error(f"Location cache write failed for {key}: {exc}")
            return True

    async def release(self, key: str) -> None:
        """Forget the recorded position so the next report claims immediately."""
        async with self._lock_for(key):
            try:
                await self.cache.delete(key)
            except Exception as exc:
                log.error(f"Location cache delete failed for {key}: {exc}")

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _lock_for(self, key: str) -> asyncio.Lock:
        return self._locks[hash(key) % _LOCK_SHARDS]
