"""
Unit tests for the agent presence tracker.
"""

import pytest

from fieldops.errors import InvalidCoordinate
from fieldops.presence import AgentPresenceTracker


class TestUpsert:
    """Test position updates."""

    def test_upsert_replaces(self, clock, user_caller):
        """Two updates leave exactly one entry with the second coordinates."""
        tracker = AgentPresenceTracker(clock=clock)

        tracker.upsert(user_caller, 1.0, 2.0, "red")
        clock.advance(minutes=5)
        tracker.upsert(user_caller, 3.0, 4.0)

        positions = tracker.list()
        assert len(positions) == 1
        assert (positions[0].lat, positions[0].lng) == (3.0, 4.0)
        assert positions[0].color == "green"
        assert positions[0].updated_at == clock.now

    def test_upsert_keyed_case_insensitive(self, clock, user_caller):
        from fieldops.auth import AuthorizedCaller

        tracker = AgentPresenceTracker(clock=clock)
        shouting = AuthorizedCaller(email="USER@X.MIL", name="Operador", role=user_caller.role)

        tracker.upsert(user_caller, 1.0, 2.0)
        tracker.upsert(shouting, 5.0, 6.0)

        assert len(tracker) == 1

    @pytest.mark.parametrize("lat,lng", [(None, 1.0), ("x", 1.0), (1.0, [2]), (-91, 0), (0, 200)])
    def test_invalid(self, clock, user_caller, lat, lng):
        tracker = AgentPresenceTracker(clock=clock)

        with pytest.raises(InvalidCoordinate):
            tracker.upsert(user_caller, lat, lng)

        assert len(tracker) == 0

    def test_numeric_strings(self, clock, user_caller):
        tracker = AgentPresenceTracker(clock=clock)

        position = tracker.upsert(user_caller, "12.5", " -70.25 ")

        assert (position.lat, position.lng) == (12.5, -70.25)


class TestStaleness:
    """Test lazy eviction."""

    def test_evicted_after_horizon(self, clock, user_caller, other_caller):
        tracker = AgentPresenceTracker(ttl_hours=24, clock=clock)
        tracker.upsert(user_caller, 1.0, 2.0)
        clock.advance(hours=20)
        tracker.upsert(other_caller, 3.0, 4.0)

        clock.advance(hours=4)
        assert {p.email for p in tracker.list()} == {"user@x.mil", "other@x.mil"}

        clock.advance(seconds=1)
        assert [p.email for p in tracker.list()] == ["other@x.mil"]
        assert len(tracker) == 1

    def test_refresh_keeps_alive(self, clock, user_caller):
        tracker = AgentPresenceTracker(ttl_hours=1, clock=clock)
        tracker.upsert(user_caller, 1.0, 2.0)
        clock.advance(minutes=50)
        tracker.upsert(user_caller, 1.5, 2.5)
        clock.advance(minutes=50)

        assert len(tracker.list()) == 1

    def test_remove(self, clock, user_caller):
        tracker = AgentPresenceTracker(clock=clock)
        tracker.upsert(user_caller, 1.0, 2.0)

        assert tracker.remove("User@x.mil") is True
        assert tracker.remove("user@x.mil") is False
        assert tracker.list() == []
