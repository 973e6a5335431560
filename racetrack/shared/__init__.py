"""
Shared utilities (NOT business logic).

Usage:
    from racetrack.shared import haversine, utcnow
    from racetrack.shared.errors import NotFoundError
"""
from .geo import (
    haversine,
    is_valid_coordinate,
    EARTH_RADIUS_KM,
)
from .time import (
    utcnow,
    to_naive_utc,
    isoformat_utc,
)
from .errors import (
    RaceTrackError,
    NotFoundError,
    ValidationError,
    RaceClosedError,
    AlreadyParticipantError,
    OngoingParticipationError,
    UserAlreadyExistsError,
    ConcurrentUpdateError,
)
from .repository import BaseRepository

__all__ = [
    # geo
    "haversine",
    "is_valid_coordinate",
    "EARTH_RADIUS_KM",
    # time
    "utcnow",
    "to_naive_utc",
    "isoformat_utc",
    # errors
    "RaceTrackError",
    "NotFoundError",
    "ValidationError",
    "RaceClosedError",
    "AlreadyParticipantError",
    "OngoingParticipationError",
    "UserAlreadyExistsError",
    "ConcurrentUpdateError",
    # repository
    "BaseRepository",
]
