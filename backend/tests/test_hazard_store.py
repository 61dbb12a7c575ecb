"""Tests for hazard validation and the in-memory hazard store."""

import asyncio

import pytest

from rover.core.exceptions import (
    DeletionNotAuthorized,
    HazardNotFound,
    InvalidHazardType,
    InvalidInput,
    InvalidLocation,
)
from rover.models.hazard import HazardType
from rover.schemas.common import Location
from rover.services.hazard_store import (
    InMemoryHazardStore,
    coerce_location,
    haversine_meters,
)


NYC = {"lat": 40.7128, "lng": -74.0060}


# =============================================================================
# Validation
# =============================================================================

class TestLocationValidation:
    """Tests for coerce_location."""

    def test_accepts_mapping_and_pair(self):
        """Mappings and (lat, lng) pairs are both accepted."""
        assert coerce_location(NYC) == Location(lat=40.7128, lng=-74.0060)
        assert coerce_location((40.7128, -74.0060)) == Location(lat=40.7128, lng=-74.0060)

    def test_zero_coordinates_are_valid(self):
        """The equator and prime meridian are real places."""
        assert coerce_location({"lat": 0, "lng": 0}) == Location(lat=0.0, lng=0.0)

    @pytest.mark.parametrize(
        "location",
        [
            None,
            {},
            {"lat": 40.7},
            {"lat": "40.7", "lng": "-74.0"},
            {"lat": 95, "lng": 0},
            {"lat": 0, "lng": -181},
            {"lat": float("nan"), "lng": 0},
            "40.7,-74.0",
        ],
    )
    def test_rejects_bad_locations(self, location):
        """Missing, non-numeric and out-of-range locations are rejected."""
        with pytest.raises(InvalidLocation):
            coerce_location(location)


class TestHaversine:
    """Tests for spherical distance."""

    def test_zero_distance(self):
        point = Location(lat=40.7128, lng=-74.0060)
        assert haversine_meters(point, point) == 0

    def test_one_degree_of_latitude(self):
        """One degree on the configured sphere is about 111.3 km."""
        distance = haversine_meters(Location(lat=0, lng=0), Location(lat=1, lng=0))
        assert distance == pytest.approx(111318.8, rel=1e-4)


# =============================================================================
# Create
# =============================================================================

class TestCreate:
    """Tests for InMemoryHazardStore.create."""

    @pytest.mark.asyncio
    async def test_create_returns_fresh_record(self, store):
        """New hazards get an ID, the reporter, and no verifiers."""
        hazard = await store.create("police", NYC, "userA")

        assert hazard.id
        assert hazard.type == HazardType.POLICE
        assert hazard.location == Location(lat=40.7128, lng=-74.0060)
        assert hazard.reporter_id == "userA"
        assert hazard.verifiers == []
        assert hazard.created_at.tzinfo is not None
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, store):
        first = await store.create("danger", NYC, "userA")
        second = await store.create("danger", NYC, "userA")
        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_missing_reporter_is_anonymous(self, store):
        """Reports without a user are attributed to 'anonymous'."""
        hazard = await store.create(HazardType.ACCIDENT, NYC, None)
        assert hazard.reporter_id == "anonymous"

    @pytest.mark.asyncio
    async def test_invalid_type_persists_nothing(self, store):
        """Unknown hazard types fail and leave the store empty."""
        with pytest.raises(InvalidHazardType):
            await store.create("foo", NYC, "userA")
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_type_checked_before_location(self, store):
        """A report that is wrong on both counts fails on its type."""
        with pytest.raises(InvalidHazardType):
            await store.create("foo", None, "userA")

    @pytest.mark.asyncio
    async def test_invalid_location_persists_nothing(self, store):
        with pytest.raises(InvalidLocation):
            await store.create("speed_cam", {"lat": 120, "lng": 0}, "userA")
        assert len(store) == 0


# =============================================================================
# Radius Query
# =============================================================================

class TestFindWithinRadius:
    """Tests for InMemoryHazardStore.find_within_radius."""

    @pytest.mark.asyncio
    async def test_finds_nearby_hazard(self, store):
        hazard = await store.create("police", NYC, "userA")

        found = await store.find_within_radius(NYC, 5000)

        assert [h.id for h in found] == [hazard.id]

    @pytest.mark.asyncio
    async def test_excludes_distant_hazard(self, store):
        await store.create("police", NYC, "userA")

        assert await store.find_within_radius({"lat": 0, "lng": 0}, 5000) == []

    @pytest.mark.asyncio
    async def test_radius_boundary(self, store):
        """A hazard ~2.2 km away is inside 5 km but outside 1 km."""
        await store.create("danger", {"lat": 40.7328, "lng": -74.0060}, "userA")

        assert len(await store.find_within_radius(NYC, 5000)) == 1
        assert await store.find_within_radius(NYC, 1000) == []

    @pytest.mark.asyncio
    async def test_default_radius_is_5km(self, store):
        await store.create("danger", {"lat": 40.7528, "lng": -74.0060}, "userA")  # ~4.5 km
        await store.create("danger", {"lat": 40.7728, "lng": -74.0060}, "userA")  # ~6.7 km

        assert len(await store.find_within_radius(NYC)) == 1

    @pytest.mark.asyncio
    async def test_limit_caps_results(self, store):
        for _ in range(5):
            await store.create("speed_cam", NYC, "userA")

        assert len(await store.find_within_radius(NYC, 5000, limit=3)) == 3
        assert len(await store.find_within_radius(NYC, 5000)) == 5

    @pytest.mark.asyncio
    async def test_results_are_copies(self, store):
        """Mutating a returned record does not change the store."""
        hazard = await store.create("police", NYC, "userA")
        found = await store.find_within_radius(NYC)
        found[0].verifiers.append("intruder")

        assert (await store.get(hazard.id)).verifiers == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("radius", [0, -10, float("nan"), "far"])
    async def test_rejects_bad_radius(self, store, radius):
        with pytest.raises(InvalidInput):
            await store.find_within_radius(NYC, radius)


# =============================================================================
# Verify
# =============================================================================

class TestAddVerifier:
    """Tests for InMemoryHazardStore.add_verifier."""

    @pytest.mark.asyncio
    async def test_adds_verifier(self, store):
        hazard = await store.create("police", NYC, "userA")

        updated = await store.add_verifier(hazard.id, "userB")

        assert updated.verifiers == ["userB"]

    @pytest.mark.asyncio
    async def test_idempotent(self, store):
        """Verifying twice with the same user leaves one entry."""
        hazard = await store.create("police", NYC, "userA")

        await store.add_verifier(hazard.id, "userB")
        updated = await store.add_verifier(hazard.id, "userB")

        assert updated.verifiers == ["userB"]
        assert (await store.get(hazard.id)).verifiers == ["userB"]

    @pytest.mark.asyncio
    async def test_reporter_may_verify(self, store):
        """No authorization check applies to verification."""
        hazard = await store.create("police", NYC, "userA")
        assert (await store.add_verifier(hazard.id, "userA")).verifiers == ["userA"]

    @pytest.mark.asyncio
    async def test_concurrent_verifications_stay_unique(self, store):
        hazard = await store.create("accident", NYC, "userA")

        await asyncio.gather(
            *(store.add_verifier(hazard.id, user) for user in ["u1", "u2", "u1", "u3", "u2"])
        )

        assert sorted((await store.get(hazard.id)).verifiers) == ["u1", "u2", "u3"]

    @pytest.mark.asyncio
    async def test_unknown_hazard(self, store):
        with pytest.raises(HazardNotFound):
            await store.add_verifier("does-not-exist", "userB")


# =============================================================================
# Delete
# =============================================================================

class TestDelete:
    """Tests for InMemoryHazardStore.delete."""

    @pytest.mark.asyncio
    async def test_reporter_can_delete(self, store):
        hazard = await store.create("police", NYC, "userA")

        assert await store.delete(hazard.id, "userA") == hazard.id
        assert await store.find_within_radius(NYC) == []
        with pytest.raises(HazardNotFound):
            await store.get(hazard.id)

    @pytest.mark.asyncio
    async def test_other_user_cannot_delete(self, store):
        """Deletion by someone else fails and keeps the record."""
        hazard = await store.create("police", NYC, "userA")

        with pytest.raises(DeletionNotAuthorized):
            await store.delete(hazard.id, "userC")

        assert (await store.get(hazard.id)).id == hazard.id

    @pytest.mark.asyncio
    async def test_anonymous_hazard_deletable_by_anonymous(self, store):
        hazard = await store.create("danger", NYC)
        assert await store.delete(hazard.id, "anonymous") == hazard.id

    @pytest.mark.asyncio
    async def test_unknown_hazard(self, store):
        with pytest.raises(HazardNotFound):
            await store.delete("does-not-exist", "userA")

    @pytest.mark.asyncio
    async def test_concurrent_deletes_succeed_once(self, store):
        hazard = await store.create("police", NYC, "userA")

        results = await asyncio.gather(
            store.delete(hazard.id, "userA"),
            store.delete(hazard.id, "userA"),
            return_exceptions=True,
        )

        assert results.count(hazard.id) == 1
        assert sum(isinstance(r, HazardNotFound) for r in results) == 1
