"""
VoyageWatch — Push Channel
==========================
Delivers events to one logical subscriber (a captain), never broadcast.
Each recipient owns a "room": the set of WebSocket connections that joined
under that recipient id.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Set, TYPE_CHECKING

from .errors import PushError

if TYPE_CHECKING:
    from fastapi import WebSocket

log = logging.getLogger("common.push")


class WebSocketPushChannel:

    def __init__(self):
        self._rooms: Dict[str, Set["WebSocket"]] = {}
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return sum(len(sockets) for sockets in self._rooms.values())

    def recipients(self) -> Set[str]:
        return {rid for rid, sockets in self._rooms.items() if sockets}

    async def join(self, recipient_id: str, websocket: "WebSocket") -> None:
        async with self._lock:
            self._rooms.setdefault(recipient_id, set()).add(websocket)
        log.info(f"Recipient {recipient_id} joined their private room")

    async def leave(self, recipient_id: str, websocket: "WebSocket") -> None:
        async with self._lock:
            sockets = self._rooms.get(recipient_id)
            if sockets is None:
                return
            sockets.discard(websocket)
            if not sockets:
                self._rooms.pop(recipient_id, None)
        log.info(f"Recipient {recipient_id} left their room")

    async def emit(self, recipient_id: str, event_name: str, payload: Dict[str, Any]) -> int:
        """
        Send `{"event", "data", "sentAt"}` to every socket of the recipient.
        Returns the number of sockets reached. A socket that fails to receive
        is dropped from the room and PushError is raised after the others
        have been tried.
        """
        async with self._lock:
            sockets = list(self._rooms.get(recipient_id, ()))

        if not sockets:
            log.debug(f"No live connection for recipient {recipient_id}; '{event_name}' not delivered")
            return 0

        message = {
            "event":  event_name,
            "data":   payload,
            "sentAt": datetime.now(timezone.utc).isoformat(),
        }

        delivered, failures = 0, []
        for ws in sockets:
            try:
                await ws.send_json(message)
                delivered += 1
            except Exception as exc:
                failures.append(exc)
                await self.leave(recipient_id, ws)

        if failures:
            raise PushError(
                f"Failed to emit '{event_name}' to {len(failures)} socket(s) of "
                f"recipient {recipient_id}: {failures[0]}"
            )
        return delivered
