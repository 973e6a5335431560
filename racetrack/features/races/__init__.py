"""Races feature module: participation, health sync, finish arbitration and leaderboards."""

from .models import Race, Participant, DailyDistance, ParticipantStatus, RaceStatus
from .arbitration import (
    FinishStatus,
    Finisher,
    FinishResolution,
    EMPTY_RESOLUTION,
    earliest_finisher,
    reconcile_finish,
    finish_state,
)
from .reconciliation import DaySample, merge_daily_distances, parse_samples
from .leaderboard import rank_race, global_leaderboard, user_stats
from .repository import RaceRepository
from .service import RaceService
from .sync import HealthSyncService, SyncResult

__all__ = [
    "Race",
    "Participant",
    "DailyDistance",
    "ParticipantStatus",
    "RaceStatus",
    "FinishStatus",
    "Finisher",
    "FinishResolution",
    "EMPTY_RESOLUTION",
    "earliest_finisher",
    "reconcile_finish",
    "finish_state",
    "DaySample",
    "merge_daily_distances",
    "parse_samples",
    "rank_race",
    "global_leaderboard",
    "user_stats",
    "RaceRepository",
    "RaceService",
    "HealthSyncService",
    "SyncResult",
]
