"""
Health sync.

Applies a batch of per-day distance totals from a wearable / health data
source to the user's current race participation.

Sync Flow:
1. Pick the participation: non-withdrawn, race window contains now,
   latest join time wins. None → "not applied", nothing changes.
2. Merge each valid day with max(old, new); malformed items and days
   above the plausible daily maximum are skipped.
3. Recompute the participant total from all days; complete the participant
   when the total reaches the race distance (completion time = now).
4. Re-run finish arbitration on the race.
5. Credit the distance gained this batch to the user's lifetime distance
   and XP; stamp the sync time even when nothing was gained.

Re-sending a batch gains nothing the second time, so callers may retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from racetrack.config import settings
from racetrack.features.progression import (
    ProgressionSnapshot,
    level_from_xp,
    progression_snapshot,
    xp_for_distance,
)
from racetrack.shared.time import isoformat_utc, utcnow

from .models import DailyDistance, Participant, ParticipantStatus, Race
from .reconciliation import (
    has_reached_finish,
    merge_daily_distances,
    parse_samples,
    total_distance,
)
from .service import RaceService

logger = logging.getLogger(__name__)

NOT_APPLIED_MESSAGE = "No active race participation found"
APPLIED_MESSAGE = "Health sync applied"


@dataclass
class SyncResult:
    """Outcome of one health sync."""

    applied: bool
    message: str
    delta_km: float = 0.0
    skipped: int = 0
    race_id: Optional[str] = None
    total_distance: Optional[float] = None
    participant_status: Optional[str] = None
    last_health_sync_at: Optional[datetime] = None
    progression: Optional[ProgressionSnapshot] = None
    finish_state: Optional[dict] = None

    def to_dict(self) -> dict:
        if not self.applied:
            return {"message": self.message, "applied": False, "deltaKm": 0}
        return {
            "message": self.message,
            "applied": True,
            "raceId": self.race_id,
            "deltaKm": round(self.delta_km, 3),
            "skipped": self.skipped,
            "totalDistance": self.total_distance,
            "status": self.participant_status,
            "lastHealthSyncAt": isoformat_utc(self.last_health_sync_at),
            "progression": self.progression.to_dict() if self.progression else None,
            "finishState": self.finish_state,
        }


def select_participation(
    races: Iterable[Race],
    user_id: str,
    now: datetime,
) -> tuple[Race, Participant] | None:
    """
    The participation a sync applies to: among running races where the user
    is not withdrawn, the one joined most recently (race id breaks ties).
    """
    best: tuple[Race, Participant] | None = None
    for race in races:
        if not race.is_running(now):
            continue
        participant = race.get_participant(user_id)
        if participant is None or participant.status == ParticipantStatus.WITHDRAWN:
            continue
        if participant.joined_at is None:
            continue
        if best is None or (participant.joined_at, race.id) > (best[1].joined_at, best[0].id):
            best = (race, participant)
    return best


class HealthSyncService:
    """
    Distance reconciliation entry point.

    Usage:
        service = HealthSyncService(db)
        result = await service.sync_days(user_id, [{"date": "2024-01-01", "distanceKm": 4.2}])
    """

    def __init__(
        self,
        db: AsyncSession,
        race_service: Optional[RaceService] = None,
        xp_per_km: Optional[int] = None,
        max_daily_distance_km: Optional[float] = None,
    ):
        self.db = db
        self.race_service = race_service or RaceService(db)
        self.xp_per_km = settings.xp_per_km if xp_per_km is None else xp_per_km
        self.max_daily_distance_km = (
            settings.max_daily_distance_km
            if max_daily_distance_km is None
            else max_daily_distance_km
        )

    async def sync_days(
        self,
        user_id: str,
        items: list[Any],
        now: Optional[datetime] = None,
    ) -> SyncResult:
        now = now or utcnow()

        races = await self.race_service.races.list_running_for_user(user_id, now)
        selected = select_participation(races, user_id, now)
        if selected is None:
            logger.info(f"Health sync for user {user_id}: no active participation")
            return SyncResult(applied=False, message=NOT_APPLIED_MESSAGE)

        race, participant = selected
        samples, skipped = parse_samples(items, self.max_daily_distance_km)
        if skipped:
            logger.warning(f"Health sync for user {user_id}: skipped {skipped} malformed items")

        # Merge days
        entries = {entry.day: entry for entry in participant.daily_distances}
        merge = merge_daily_distances(
            {day: entry.distance for day, entry in entries.items()},
            samples,
        )
        for day, distance in merge.days.items():
            entry = entries.get(day)
            if entry is None:
                participant.daily_distances.append(DailyDistance(day=day, distance=distance))
            elif entry.distance != distance:
                entry.distance = distance

        # Totals are recomputed, never adjusted
        participant.total_distance = total_distance(
            entry.distance for entry in participant.daily_distances
        )

        race_distance = race.distance_km
        if (
            participant.status == ParticipantStatus.ACTIVE
            and has_reached_finish(participant.total_distance, race_distance)
        ):
            participant.status = ParticipantStatus.COMPLETED
            participant.completed_at = now
            logger.info(
                f"User {user_id} completed race {race.id} "
                f"({participant.total_distance:.2f}/{race_distance:.2f} km)"
            )

        race.updated_at = now
        self.race_service.observe_finish(race, now)

        # Progression
        user = participant.user
        progression = None
        if user is not None:
            if merge.gained_km > 0:
                user.total_km_lifetime = round((user.total_km_lifetime or 0.0) + merge.gained_km, 2)
                user.total_xp = (user.total_xp or 0) + xp_for_distance(merge.gained_km, self.xp_per_km)
                user.level = level_from_xp(user.total_xp)
                progression = progression_snapshot(user.total_xp)
            user.last_health_sync_at = now

        result = SyncResult(
            applied=True,
            message=APPLIED_MESSAGE,
            delta_km=merge.gained_km,
            skipped=skipped,
            race_id=race.id,
            total_distance=participant.total_distance,
            participant_status=participant.status,
            last_health_sync_at=now if user is not None else None,
            progression=progression,
            finish_state=self.race_service.finish_state(race),
        )

        await self.race_service.commit()
        logger.info(
            f"Health sync applied to race {race.id} for user {user_id} "
            f"(+{merge.gained_km:.2f} km)"
        )
        return result
