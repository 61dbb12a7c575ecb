"""Hazard event handling and fanout to subscribed sessions.

Scopes:

- ``new-hazard`` goes only to sessions joined to the hazard's region.
- ``hazard-updated`` and ``hazard-deleted`` go to every connected session;
  the hazard's location is not looked up for these.
- ``error`` goes only to the session whose report or join was rejected.

Verify and delete failures are logged and never reported to clients.
"""

import logging
from typing import Any, Iterable

from rover.core.exceptions import (
    DeletionNotAuthorized,
    HazardError,
    HazardNotFound,
    InvalidInput,
)
from rover.realtime.connections import ConnectionManager
from rover.realtime.registry import SubscriptionRegistry
from rover.schemas.events import (
    ClientEvent,
    DeleteHazard,
    EventRejected,
    InboundEvent,
    JoinLocation,
    OutboundEvent,
    ReportHazard,
    VerifyHazard,
)
from rover.services.geogrid import region_of
from rover.services.hazard_store import HazardStore

logger = logging.getLogger("realtime.events")

# Rejections the client is told about; other malformed frames are dropped
SESSION_VISIBLE_REJECTIONS = {InboundEvent.REPORT_HAZARD, InboundEvent.JOIN_LOCATION}


class HazardEventService:
    """Applies client events to the hazard store and publishes the results."""

    def __init__(
        self,
        store: HazardStore,
        registry: SubscriptionRegistry,
        connections: ConnectionManager,
    ):
        self.store = store
        self.registry = registry
        self.connections = connections
        self._handlers = {
            JoinLocation: self.join_location,
            ReportHazard: self.report_hazard,
            VerifyHazard: self.verify_hazard,
            DeleteHazard: self.delete_hazard,
        }

    async def connect(self, session_id: str) -> None:
        await self.registry.register(session_id)
        logger.info(f"New client connected: {session_id}")

    async def disconnect(self, session_id: str) -> None:
        regions = await self.registry.leave(session_id)
        self.connections.disconnect(session_id)
        logger.info(f"Client disconnected: {session_id} (left {len(regions)} region(s))")

    async def handle(self, session_id: str, event: ClientEvent) -> None:
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"No handler for {type(event).__name__}")
        await handler(session_id, event)

    async def reject(self, session_id: str, rejection: EventRejected) -> None:
        """Deal with a frame that failed validation at the channel boundary."""
        if rejection.event in SESSION_VISIBLE_REJECTIONS:
            logger.warning(f"Rejected {rejection.event.value} from {session_id}: {rejection}")
            await self._send_error(session_id, str(rejection))
        else:
            logger.warning(f"Dropped frame from {session_id}: {rejection}")

    # -------------------------------------------------------------------------
    # Event handlers
    # -------------------------------------------------------------------------

    async def join_location(self, session_id: str, event: JoinLocation) -> None:
        try:
            region = region_of(event.lat, event.lng)
        except InvalidInput as e:
            logger.warning(f"Socket {session_id} sent invalid join-location: {e}")
            await self._send_error(session_id, str(e))
            return

        await self.registry.join(session_id, region)
        logger.info(f"Socket {session_id} joined room {region}")

    async def report_hazard(self, session_id: str, event: ReportHazard) -> None:
        try:
            hazard = await self.store.create(event.type, event.location, event.user_id)
        except InvalidInput as e:
            logger.warning(f"Error reporting hazard from {session_id}: {e}")
            await self._send_error(session_id, str(e))
            return
        except HazardError as e:
            logger.error(f"Error reporting hazard from {session_id}: {e}")
            await self._send_error(session_id, "Failed to report hazard")
            return

        region = region_of(hazard.location.lat, hazard.location.lng)
        members = await self.registry.members_of(region)
        await self._deliver(members, OutboundEvent.NEW_HAZARD, hazard.summary())

        logger.info(
            f"New hazard reported: {hazard.type.value} by {hazard.reporter_id} "
            f"in room {region} ({len(members)} subscriber(s))"
        )

    async def verify_hazard(self, session_id: str, event: VerifyHazard) -> None:
        try:
            hazard = await self.store.add_verifier(event.hazard_id, event.user_id)
        except HazardNotFound:
            logger.error(f"Hazard not found: {event.hazard_id}")
            return
        except HazardError as e:
            logger.error(f"Error verifying hazard {event.hazard_id}: {e}")
            return

        await self._broadcast(OutboundEvent.HAZARD_UPDATED, hazard.detail())
        logger.info(f"Hazard verified: {event.hazard_id} by {event.user_id}")

    async def delete_hazard(self, session_id: str, event: DeleteHazard) -> None:
        try:
            hazard_id = await self.store.delete(event.hazard_id, event.user_id)
        except (DeletionNotAuthorized, HazardNotFound) as e:
            logger.error(f"Unauthorized deletion attempt or hazard not found: {e}")
            return
        except HazardError as e:
            logger.error(f"Error deleting hazard {event.hazard_id}: {e}")
            return

        await self._broadcast(OutboundEvent.HAZARD_DELETED, {"hazardId": hazard_id})
        logger.info(f"Hazard deleted: {hazard_id} by {event.user_id}")

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    async def _send_error(self, session_id: str, message: str) -> None:
        if not await self.connections.send(session_id, OutboundEvent.ERROR.value, message):
            await self.registry.leave(session_id)

    async def _broadcast(self, event: OutboundEvent, data: Any) -> None:
        await self._deliver(await self.registry.all_sessions(), event, data)

    async def _deliver(self, session_ids: Iterable[str], event: OutboundEvent, data: Any) -> None:
        failed = await self.connections.publish(session_ids, event.value, data)
        for session_id in failed:
            await self.registry.leave(session_id)
