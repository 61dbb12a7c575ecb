"""Tests for hazard event handling and fanout scope."""

import pytest
from unittest.mock import AsyncMock

from rover.core.exceptions import StoreUnavailable
from rover.schemas.events import (
    DeleteHazard,
    EventRejected,
    InboundEvent,
    JoinLocation,
    ReportHazard,
    VerifyHazard,
    parse_event,
)


NYC = {"lat": 40.7128, "lng": -74.0060}


def report(type_="police", location=None, user_id="userA"):
    return ReportHazard.model_validate(
        {"type": type_, "location": location or NYC, "userId": user_id}
    )


class TestJoinLocation:
    """Tests for join-location."""

    @pytest.mark.asyncio
    async def test_join_registers_region(self, service, make_session):
        session_id, _ = await make_session()

        await service.handle(session_id, JoinLocation(lat=40.7128, lng=-74.0060))

        assert await service.registry.regions_of(session_id) == {"40.71_-74.01"}

    @pytest.mark.asyncio
    async def test_out_of_range_join_sends_error(self, service, make_session):
        session_id, websocket = await make_session()

        await service.handle(session_id, JoinLocation(lat=95.0, lng=0.0))

        assert websocket.events("error")
        assert await service.registry.regions_of(session_id) == set()


class TestReportHazard:
    """Tests for report-hazard fanout."""

    @pytest.mark.asyncio
    async def test_new_hazard_reaches_region_only(self, service, make_session):
        """Only sessions joined to the hazard's region get new-hazard."""
        reporter_id, reporter = await make_session()
        same_id, same = await make_session()
        nearby_id, nearby = await make_session()
        idle_id, idle = await make_session()

        await service.handle(same_id, JoinLocation(lat=40.7128, lng=-74.0060))
        await service.handle(nearby_id, JoinLocation(lat=40.7049, lng=-74.0012))

        await service.handle(reporter_id, report())

        assert len(service.store) == 1
        [payload] = same.events("new-hazard")
        assert payload["type"] == "police"
        assert payload["location"] == {"lat": 40.7128, "lng": -74.0060}
        assert payload["verifiedBy"] == []
        assert payload["id"]
        assert nearby.events("new-hazard") == []
        assert idle.events("new-hazard") == []
        # Reporter has not joined the region, so it hears nothing either
        assert reporter.sent == []

    @pytest.mark.asyncio
    async def test_anonymous_report(self, service, make_session):
        session_id, _ = await make_session()

        await service.handle(session_id, report(user_id=None))

        [hazard] = await service.store.find_within_radius(NYC)
        assert hazard.reporter_id == "anonymous"

    @pytest.mark.asyncio
    async def test_store_failure_reported_to_sender_only(self, service, make_session, monkeypatch):
        sender_id, sender = await make_session()
        watcher_id, watcher = await make_session()
        await service.handle(watcher_id, JoinLocation(lat=40.7128, lng=-74.0060))
        monkeypatch.setattr(service.store, "create", AsyncMock(side_effect=StoreUnavailable("db down")))

        await service.handle(sender_id, report())

        assert sender.events("error") == ["Failed to report hazard"]
        assert watcher.sent == []

    @pytest.mark.asyncio
    async def test_invalid_report_rejected_to_sender(self, service, make_session):
        """A malformed report yields an error for the sender and nothing else."""
        sender_id, sender = await make_session()
        watcher_id, watcher = await make_session()
        await service.handle(watcher_id, JoinLocation(lat=40.7128, lng=-74.0060))

        with pytest.raises(EventRejected) as exc_info:
            parse_event({"event": "report-hazard", "data": {"type": "foo", "location": NYC}})
        await service.reject(sender_id, exc_info.value)

        assert sender.events("error") == ["Invalid hazard type"]
        assert watcher.sent == []
        assert len(service.store) == 0


class TestVerifyHazard:
    """Tests for verify-hazard fanout."""

    @pytest.mark.asyncio
    async def test_update_broadcast_to_everyone(self, service, make_session):
        """hazard-updated goes to all sessions, joined or not."""
        joined_id, joined = await make_session()
        idle_id, idle = await make_session()
        await service.handle(joined_id, JoinLocation(lat=1.0, lng=1.0))
        hazard = await service.store.create("accident", NYC, "userA")

        await service.handle(idle_id, VerifyHazard(hazardId=hazard.id, userId="userB"))

        for websocket in (joined, idle):
            [payload] = websocket.events("hazard-updated")
            assert payload["id"] == hazard.id
            assert payload["verifiedBy"] == ["userB"]
            assert payload["reporterId"] == "userA"
            assert "createdAt" in payload

    @pytest.mark.asyncio
    async def test_double_verification_keeps_one_entry(self, service, make_session):
        session_id, websocket = await make_session()
        hazard = await service.store.create("accident", NYC, "userA")

        await service.handle(session_id, VerifyHazard(hazardId=hazard.id, userId="userB"))
        await service.handle(session_id, VerifyHazard(hazardId=hazard.id, userId="userB"))

        assert [p["verifiedBy"] for p in websocket.events("hazard-updated")] == [["userB"], ["userB"]]
        assert (await service.store.get(hazard.id)).verifiers == ["userB"]

    @pytest.mark.asyncio
    async def test_unknown_hazard_is_silent(self, service, make_session):
        session_id, websocket = await make_session()

        await service.handle(session_id, VerifyHazard(hazardId="missing", userId="userB"))

        assert websocket.sent == []


class TestDeleteHazard:
    """Tests for delete-hazard fanout."""

    @pytest.mark.asyncio
    async def test_reporter_delete_broadcast(self, service, make_session):
        first_id, first = await make_session()
        _, second = await make_session()
        hazard = await service.store.create("police", NYC, "userA")

        await service.handle(first_id, DeleteHazard(hazardId=hazard.id, userId="userA"))

        assert first.events("hazard-deleted") == [{"hazardId": hazard.id}]
        assert second.events("hazard-deleted") == [{"hazardId": hazard.id}]
        assert await service.store.find_within_radius(NYC) == []

    @pytest.mark.asyncio
    async def test_unauthorized_delete_is_silent(self, service, make_session):
        """A non-reporter delete emits nothing and keeps the hazard."""
        session_id, websocket = await make_session()
        hazard = await service.store.create("police", NYC, "userA")

        await service.handle(session_id, DeleteHazard(hazardId=hazard.id, userId="userC"))

        assert websocket.sent == []
        assert (await service.store.get(hazard.id)).id == hazard.id

    @pytest.mark.asyncio
    async def test_unknown_hazard_is_silent(self, service, make_session):
        session_id, websocket = await make_session()

        await service.handle(session_id, DeleteHazard(hazardId="missing", userId="userA"))

        assert websocket.sent == []


class TestDisconnect:
    """Tests for disconnect handling and broken sessions."""

    @pytest.mark.asyncio
    async def test_disconnect_clears_subscriptions(self, service, make_session):
        session_id, websocket = await make_session()
        await service.handle(session_id, JoinLocation(lat=40.7128, lng=-74.0060))

        await service.disconnect(session_id)
        await service.handle((await make_session())[0], report())

        assert await service.registry.members_of("40.71_-74.01") == set()
        assert session_id not in await service.registry.all_sessions()
        assert websocket.sent == []

    @pytest.mark.asyncio
    async def test_broken_session_dropped_during_broadcast(self, service, make_session):
        healthy_id, healthy = await make_session()
        broken_id, broken = await make_session(fail=True)
        hazard = await service.store.create("police", NYC, "userA")

        await service.handle(healthy_id, DeleteHazard(hazardId=hazard.id, userId="userA"))

        assert healthy.events("hazard-deleted") == [{"hazardId": hazard.id}]
        assert broken_id not in await service.registry.all_sessions()
        assert broken.closed


class TestRejections:
    """Tests for boundary rejections that never reach a handler."""

    @pytest.mark.asyncio
    async def test_malformed_verify_is_dropped(self, service, make_session):
        session_id, websocket = await make_session()

        await service.reject(session_id, EventRejected("bad", InboundEvent.VERIFY_HAZARD))

        assert websocket.sent == []

    @pytest.mark.asyncio
    async def test_unknown_event_is_dropped(self, service, make_session):
        session_id, websocket = await make_session()

        await service.reject(session_id, EventRejected("Unknown event: 'ping'"))

        assert websocket.sent == []

    @pytest.mark.asyncio
    async def test_malformed_join_sends_error(self, service, make_session):
        session_id, websocket = await make_session()

        await service.reject(session_id, EventRejected("Invalid coordinates", InboundEvent.JOIN_LOCATION))

        assert websocket.events("error") == ["Invalid coordinates"]
