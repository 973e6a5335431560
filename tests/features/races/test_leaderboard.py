"""
Tests for leaderboards and per-user statistics.
"""

from datetime import date, datetime, timedelta

import pytest

from racetrack.features.races.leaderboard import (
    ParticipantRow,
    RaceOutcome,
    distance_remaining,
    global_leaderboard,
    global_standings,
    participant_progress,
    rank_race,
    user_stats,
)


T = datetime(2024, 5, 1, 8, 0, 0)


def row(user_id, total, status="active", completed_at=None, joined_at=T, name=None, **kw):
    return ParticipantRow(
        user_id=user_id,
        name=name or user_id.upper(),
        total_distance=total,
        status=status,
        completed_at=completed_at,
        joined_at=joined_at,
        **kw,
    )


# =============================================================================
# Test Race Leaderboard
# =============================================================================

class TestRankRace:
    """Tests for rank_race function."""

    def test_distance_then_completion_time(self):
        """{12.0 at T, 12.0 at T+1s, 5.0} ranks in that order."""
        rows = [
            row("c", 5.0),
            row("b", 12.0, "completed", completed_at=T + timedelta(seconds=1)),
            row("a", 12.0, "completed", completed_at=T),
        ]
        board = rank_race(rows, race_distance=10.0)
        assert [e["userId"] for e in board] == ["a", "b", "c"]
        assert [e["rank"] for e in board] == [1, 2, 3]

    def test_completed_before_active_on_equal_distance(self):
        rows = [row("a", 10.0), row("b", 10.0, "completed", completed_at=T)]
        assert [e["userId"] for e in rank_race(rows, 10.0)] == ["b", "a"]

    def test_join_time_then_name_then_id(self):
        rows = [
            row("d", 3.0, joined_at=T + timedelta(hours=1)),
            row("c", 3.0, name="Same"),
            row("b", 3.0, name="Same"),
            row("a", 3.0, name="Zed"),
            row("e", 3.0, joined_at=None),
        ]
        order = [e["userId"] for e in rank_race(rows, 10.0)]
        assert order == ["b", "c", "a", "d", "e"]

    def test_entry_fields(self):
        rows = [
            row(
                "a", 4.0,
                avatar_url="https://img/a.png",
                daily_distances=((date(2024, 5, 2), 1.5), (date(2024, 5, 1), 2.5)),
            )
        ]
        entry = rank_race(rows, 10.0)[0]
        assert entry["name"] == "A"
        assert entry["avatarUrl"] == "https://img/a.png"
        assert entry["progress"] == 0.4
        assert entry["distanceRemaining"] == 6.0
        assert entry["joinedAt"] == "2024-05-01T08:00:00Z"
        assert entry["completedAt"] is None
        assert entry["dailyDistances"] == [
            {"date": "2024-05-01", "distance": 2.5},
            {"date": "2024-05-02", "distance": 1.5},
        ]

    def test_empty_race(self):
        assert rank_race([], 10.0) == []


class TestProgress:
    """Tests for participant_progress and distance_remaining."""

    def test_clamped(self):
        assert participant_progress(15.0, 10.0) == 1.0
        assert participant_progress(0.0, 10.0) == 0.0
        assert participant_progress(1.0, 3.0) == 0.3333

    def test_zero_distance_race(self):
        assert participant_progress(0.0, 0.0) == 1.0

    def test_remaining(self):
        assert distance_remaining(12.0, 10.0) == 0.0
        assert distance_remaining(2.5, 9.9964) == 7.496


# =============================================================================
# Test Global Leaderboard
# =============================================================================

class TestGlobalLeaderboard:
    """Tests for global_standings and global_leaderboard."""

    def test_wins_break_distance_tie(self):
        """A (20 km, 1 win) and B (20 km, 2 wins): B ranks first."""
        races = [
            RaceOutcome("r1", "a", (row("a", 10.0, "completed", T), row("b", 5.0))),
            RaceOutcome("r2", "b", (row("a", 5.0), row("b", 10.0, "completed", T))),
            RaceOutcome("r3", "b", (row("a", 5.0), row("b", 5.0, "completed", T))),
        ]
        board = global_leaderboard(races)
        assert [(e["userId"], e["totalKm"], e["wins"]) for e in board] == [
            ("b", 20.0, 2),
            ("a", 20.0, 1),
        ]
        assert [e["rank"] for e in board] == [1, 2]
        assert board[0]["races"] == 3

    def test_provisional_winner_does_not_count(self):
        races = [RaceOutcome("r1", None, (row("a", 12.0, "completed", T),))]
        assert global_standings(races)[0].wins == 0

    def test_distance_first(self):
        races = [RaceOutcome("r1", "a", (row("a", 10.0), row("b", 11.0)))]
        assert [e.user_id for e in global_standings(races)] == ["b", "a"]

    def test_total_rounded_in_payload(self):
        races = [RaceOutcome("r1", None, (row("a", 1.005), row("b", 0.001)))]
        board = global_leaderboard(races)
        assert board[0]["totalKm"] == pytest.approx(1.0, abs=0.01)
        assert board[1]["totalKm"] == 0.0


# =============================================================================
# Test User Stats
# =============================================================================

class TestUserStats:
    """Tests for user_stats function."""

    def test_win_rate(self):
        races = [
            RaceOutcome("r1", "a", (row("a", 10.0),)),
            RaceOutcome("r2", "b", (row("a", 4.0), row("b", 10.0))),
            RaceOutcome("r3", None, (row("a", 2.5),)),
        ]
        stats = user_stats("a", races)
        assert stats.races_participated == 3
        assert stats.wins == 1
        assert stats.total_km == pytest.approx(16.5)
        assert stats.win_rate == 33.3
        assert stats.to_dict()["name"] == "A"

    def test_no_races(self):
        stats = user_stats("nobody", [])
        assert stats.to_dict() == {
            "userId": "nobody",
            "name": "Participant",
            "racesParticipated": 0,
            "wins": 0,
            "totalKm": 0.0,
            "winRate": 0.0,
        }
