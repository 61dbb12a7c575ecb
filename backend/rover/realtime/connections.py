"""Live WebSocket sessions and event delivery."""

import asyncio
import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional

from fastapi import WebSocket

logger = logging.getLogger("realtime.events")


class ConnectionManager:
    """
    Maps session IDs to open WebSockets and sends named events to them.

    Outbound frames are ``{"event": name, "data": payload}``. Delivery to a
    group is concurrent and independent: a session that fails to receive is
    reported back to the caller, never raised.
    """

    def __init__(self):
        self._sockets: Dict[str, WebSocket] = {}

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sockets

    def __len__(self) -> int:
        return len(self._sockets)

    async def connect(self, websocket: WebSocket, session_id: Optional[str] = None) -> str:
        """Accept the socket and return its session ID."""
        await websocket.accept()
        session_id = session_id or uuid.uuid4().hex
        self._sockets[session_id] = websocket
        return session_id

    def disconnect(self, session_id: str) -> None:
        self._sockets.pop(session_id, None)

    async def send(self, session_id: str, event: str, data: Any) -> bool:
        """Send one event to one session. Returns False if it could not be delivered."""
        websocket = self._sockets.get(session_id)
        if websocket is None:
            return False

        try:
            await websocket.send_json({"event": event, "data": data})
        except Exception as e:
            logger.warning(f"Delivery of {event} to {session_id} failed: {e}")
            self.disconnect(session_id)
            await self._close(session_id, websocket)
            return False
        return True

    async def _close(self, session_id: str, websocket: WebSocket) -> None:
        """Close a socket that can no longer be written to, ending its receive loop."""
        try:
            await websocket.close()
        except Exception as e:
            logger.debug(f"Closing {session_id} after failed delivery: {e}")

    async def publish(self, session_ids: Iterable[str], event: str, data: Any) -> List[str]:
        """Send one event to many sessions. Returns the sessions that failed."""
        targets = [sid for sid in session_ids if sid in self._sockets]
        if not targets:
            return []

        results = await asyncio.gather(
            *(self.send(sid, event, data) for sid in targets)
        )
        return [sid for sid, delivered in zip(targets, results) if not delivered]
