"""
Leaderboards and per-user statistics.

Orderings are expressed as sort-key tuples so the total order is explicit:
every key has a direction and missing values have a sentinel. Two rows only
compare equal when every visible field is equal, including the user id.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional

# Missing timestamps sort after every real one.
MISSING_TIMESTAMP = datetime.max

COMPLETED = "completed"


@dataclass(frozen=True)
class ParticipantRow:
    """Flattened participant state used for ranking."""

    user_id: str
    name: str
    total_distance: float
    status: str
    completed_at: Optional[datetime] = None
    joined_at: Optional[datetime] = None
    email: str = ""
    avatar_url: str = ""
    daily_distances: tuple[tuple[date, float], ...] = ()


@dataclass(frozen=True)
class RaceOutcome:
    """What global aggregation needs to know about one race."""

    race_id: str
    final_winner_id: Optional[str]
    participants: tuple[ParticipantRow, ...]


@dataclass
class StandingEntry:
    """Accumulated global standing of one user."""

    user_id: str
    name: str = ""
    email: str = ""
    avatar_url: str = ""
    total_km: float = 0.0
    races: int = 0
    wins: int = 0

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "name": self.name,
            "email": self.email,
            "avatarUrl": self.avatar_url,
            "totalKm": round(self.total_km, 2),
            "races": self.races,
            "wins": self.wins,
        }


@dataclass
class UserStats:
    user_id: str
    name: str = "Participant"
    races_participated: int = 0
    wins: int = 0
    total_km: float = 0.0

    @property
    def win_rate(self) -> float:
        if self.races_participated == 0:
            return 0.0
        return round(self.wins / self.races_participated * 100, 1)

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "name": self.name,
            "racesParticipated": self.races_participated,
            "wins": self.wins,
            "totalKm": round(self.total_km, 2),
            "winRate": self.win_rate,
        }


# =============================================================================
# Sort keys
# =============================================================================

def race_sort_key(row: ParticipantRow) -> tuple:
    """
    Per-race order:
    1. total distance, descending
    2. completed before not completed
    3. completion time, ascending (missing last)
    4. join time, ascending (missing last)
    5. display name, ascending
    6. user id, ascending
    """
    return (
        -row.total_distance,
        0 if row.status == COMPLETED else 1,
        row.completed_at or MISSING_TIMESTAMP,
        row.joined_at or MISSING_TIMESTAMP,
        row.name or "",
        row.user_id,
    )


def global_sort_key(entry: StandingEntry) -> tuple:
    """Global order: total km desc, wins desc, name asc, user id asc."""
    return (-entry.total_km, -entry.wins, entry.name or "", entry.user_id)


# =============================================================================
# Per-race leaderboard
# =============================================================================

def participant_progress(total_distance: float, race_distance: float) -> float:
    """Share of the race covered, clamped to [0, 1], 4 decimals."""
    if race_distance <= 0:
        return 1.0
    return round(min(1.0, max(0.0, total_distance / race_distance)), 4)


def distance_remaining(total_distance: float, race_distance: float) -> float:
    return round(max(0.0, race_distance - total_distance), 3)


def rank_race(rows: Iterable[ParticipantRow], race_distance: float) -> list[dict]:
    """Build the ranked leaderboard of one race."""
    ranked = sorted(rows, key=race_sort_key)
    return [
        {
            "rank": position,
            "userId": row.user_id,
            "name": row.name,
            "avatarUrl": row.avatar_url,
            "totalDistance": row.total_distance,
            "status": row.status,
            "completedAt": _iso(row.completed_at),
            "joinedAt": _iso(row.joined_at),
            "progress": participant_progress(row.total_distance, race_distance),
            "distanceRemaining": distance_remaining(row.total_distance, race_distance),
            "dailyDistances": [
                {"date": day.isoformat(), "distance": distance}
                for day, distance in sorted(row.daily_distances)
            ],
        }
        for position, row in enumerate(ranked, start=1)
    ]


# =============================================================================
# Global aggregation
# =============================================================================

def global_standings(races: Iterable[RaceOutcome]) -> list[StandingEntry]:
    """
    Aggregate every participation across races.

    A win is counted only for the race's FINAL winner; provisional winners
    do not count.
    """
    standings: dict[str, StandingEntry] = {}

    for race in races:
        for row in race.participants:
            if not row.user_id:
                continue
            entry = standings.setdefault(row.user_id, StandingEntry(user_id=row.user_id))
            entry.total_km += float(row.total_distance or 0.0)
            entry.races += 1
            if race.final_winner_id is not None and row.user_id == race.final_winner_id:
                entry.wins += 1

            # Keep the first meaningful name/email/avatar
            if (not entry.name or entry.name == "Participant") and row.name:
                entry.name = row.name
            if not entry.email and row.email:
                entry.email = row.email
            if not entry.avatar_url and row.avatar_url:
                entry.avatar_url = row.avatar_url

    return sorted(standings.values(), key=global_sort_key)


def global_leaderboard(races: Iterable[RaceOutcome]) -> list[dict]:
    return [
        {"rank": position, **entry.to_dict()}
        for position, entry in enumerate(global_standings(races), start=1)
    ]


def user_stats(user_id: str, races: Iterable[RaceOutcome]) -> UserStats:
    """Participation, wins and distance of one user."""
    stats = UserStats(user_id=user_id)

    for race in races:
        row = next((p for p in race.participants if p.user_id == user_id), None)
        if row is None:
            continue
        stats.races_participated += 1
        stats.total_km += float(row.total_distance or 0.0)
        if stats.name == "Participant" and row.name:
            stats.name = row.name
        if race.final_winner_id == user_id:
            stats.wins += 1

    return stats


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() + "Z" if value is not None else None
