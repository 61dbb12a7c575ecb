"""Realtime hazard event channel over WebSocket."""

import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from rover.api.deps import get_event_service
from rover.realtime.fanout import HazardEventService
from rover.schemas.events import EventRejected, OutboundEvent, parse_event

logger = logging.getLogger("realtime.events")

router = APIRouter()


@router.websocket("/ws")
async def hazard_events(
    websocket: WebSocket,
    service: HazardEventService = Depends(get_event_service),
):
    """
    Bidirectional hazard event stream.

    Frames in both directions are JSON objects ``{"event": ..., "data": ...}``.
    Frames from one connection are handled one at a time, in arrival order.
    """
    session_id = await service.connections.connect(websocket)
    await service.connect(session_id)
    await service.connections.send(session_id, OutboundEvent.CONNECTED.value, {"sessionId": session_id})

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))

            raw = message.get("text")
            if raw is None:
                try:
                    raw = (message.get("bytes") or b"").decode("utf-8")
                except UnicodeDecodeError:
                    logger.warning(f"Dropped undecodable binary frame from {session_id}")
                    continue

            try:
                event = parse_event(json.loads(raw))
            except json.JSONDecodeError:
                logger.warning(f"Dropped non-JSON frame from {session_id}")
                continue
            except EventRejected as rejection:
                await service.reject(session_id, rejection)
                continue

            try:
                await service.handle(session_id, event)
            except Exception:
                logger.exception(f"Unhandled error processing event from {session_id}")
    except WebSocketDisconnect:
        pass
    finally:
        await service.disconnect(session_id)
