"""
Race service: race management, finish arbitration and leaderboards.

Every read or write that touches participant completion data re-runs
finish arbitration on the affected races. A changed resolution is written
back in the same unit of work:

- write paths commit and surface a lost optimistic-lock race as
  ConcurrentUpdateError;
- read paths build their response first, then try to persist the refreshed
  cache; losing that write is logged and the next observation recomputes.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from racetrack.config import settings
from racetrack.features.users.models import User
from racetrack.features.users.repository import UserRepository
from racetrack.shared.errors import (
    AlreadyParticipantError,
    ConcurrentUpdateError,
    NotFoundError,
    OngoingParticipationError,
    RaceClosedError,
    ValidationError,
)
from racetrack.shared.geo import is_valid_coordinate
from racetrack.shared.time import isoformat_utc, to_naive_utc, utcnow

from .arbitration import confirmation_window, finish_state, reconcile_finish
from .leaderboard import (
    ParticipantRow,
    RaceOutcome,
    global_leaderboard,
    rank_race,
    user_stats,
)
from .models import Participant, ParticipantStatus, Race, RaceStatus
from .reconciliation import has_reached_finish
from .repository import RaceRepository
from .schemas import RaceCreate, RaceUpdate

logger = logging.getLogger(__name__)


def participant_row(participant: Participant) -> ParticipantRow:
    """Flatten an ORM participant for ranking."""
    user = participant.user
    return ParticipantRow(
        user_id=participant.user_id,
        name=participant.display_name,
        total_distance=float(participant.total_distance or 0.0),
        status=participant.status,
        completed_at=participant.completed_at,
        joined_at=participant.joined_at,
        email=(user.email if user else None) or "",
        avatar_url=(user.avatar_url if user else None) or "",
        daily_distances=tuple(
            (entry.day, entry.distance) for entry in participant.daily_distances
        ),
    )


def race_outcome(race: Race) -> RaceOutcome:
    return RaceOutcome(
        race_id=race.id,
        final_winner_id=race.final_winner_id,
        participants=tuple(participant_row(p) for p in race.participants),
    )


class RaceService:
    """
    Race lifecycle, arbitration and aggregation.

    Usage:
        service = RaceService(db)
        board = await service.race_leaderboard(race_id)
    """

    def __init__(self, db: AsyncSession, confirmation_window_ms: Optional[int] = None):
        self.db = db
        self.races = RaceRepository(db)
        self.users = UserRepository(db)
        self.confirmation_window_ms = (
            settings.finish_confirmation_window_ms
            if confirmation_window_ms is None
            else confirmation_window_ms
        )

    # =========================================================================
    # Finish arbitration
    # =========================================================================

    def observe_finish(self, race: Race, now: datetime) -> bool:
        """
        Re-derive the race's finish resolution and store it on the model
        when it changed. Returns True if the resolution changed.
        """
        resolution, changed = reconcile_finish(
            race.finish_resolution,
            race.finishers(),
            now,
            confirmation_window(self.confirmation_window_ms),
        )
        if changed:
            race.finish_resolution = resolution
            race.updated_at = now
        return changed

    def finish_state(self, race: Race) -> dict:
        return finish_state(race.finish_resolution, self.confirmation_window_ms)

    async def commit(self) -> None:
        """Commit a write; a lost optimistic-lock race becomes ConcurrentUpdateError."""
        try:
            await self.db.commit()
        except StaleDataError as e:
            await self.db.rollback()
            logger.warning(f"Concurrent race update detected: {e}")
            raise ConcurrentUpdateError(
                "Race or user was modified concurrently, retry the request"
            ) from e

    async def _persist_observation(self, changed: bool) -> None:
        """Write back refreshed finish resolutions observed by a read."""
        if not changed:
            return
        try:
            await self.db.commit()
        except StaleDataError as e:
            await self.db.rollback()
            logger.warning(f"Finish resolution not persisted, race changed concurrently: {e}")

    # =========================================================================
    # Lookups
    # =========================================================================

    async def _get_race(self, race_id: str) -> Race:
        race = await self.races.get_by_id(race_id)
        if not race:
            raise NotFoundError("Race not found", race_id=race_id)
        return race

    async def _get_user(self, user_id: str) -> User:
        user = await self.users.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found", user_id=user_id)
        return user

    def race_payload(self, race: Race, now: datetime) -> dict:
        """Race detail for API responses."""
        return {
            "id": race.id,
            "name": race.name,
            "description": race.description,
            "startPoint": {
                "latitude": race.start_latitude,
                "longitude": race.start_longitude,
                "address": race.start_address,
            },
            "endPoint": {
                "latitude": race.end_latitude,
                "longitude": race.end_longitude,
                "address": race.end_address,
            },
            "startDate": isoformat_utc(race.start_date),
            "endDate": isoformat_utc(race.end_date),
            "status": race.status_at(now),
            "createdBy": race.created_by,
            "createdAt": isoformat_utc(race.created_at),
            "distance": race.distance_km,
            "participants": [
                {
                    "userId": p.user_id,
                    "name": p.display_name,
                    "joinedAt": isoformat_utc(p.joined_at),
                    "status": p.status,
                    "completedAt": isoformat_utc(p.completed_at),
                    "totalDistance": p.total_distance,
                    "dailyDistances": [
                        {"date": d.day.isoformat(), "distance": d.distance}
                        for d in sorted(p.daily_distances, key=lambda d: d.day)
                    ],
                }
                for p in race.participants
            ],
            "finishState": self.finish_state(race),
        }

    # =========================================================================
    # Race management
    # =========================================================================

    @staticmethod
    def _validate_route_and_window(race: Race) -> None:
        if not race.name or not race.name.strip():
            raise ValidationError("Race name is required")
        for lat, lon in (
            (race.start_latitude, race.start_longitude),
            (race.end_latitude, race.end_longitude),
        ):
            if not is_valid_coordinate(lat, lon):
                raise ValidationError(f"Invalid coordinates: ({lat}, {lon})")
        if race.end_date <= race.start_date:
            raise ValidationError("End date must be after start date")

    async def create_race(
        self,
        data: RaceCreate,
        created_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        """Create a race. The creator, when given, must exist."""
        now = now or utcnow()
        if created_by is not None:
            await self._get_user(created_by)

        race = Race(
            name=data.name.strip(),
            description=data.description,
            start_latitude=data.start_point.latitude,
            start_longitude=data.start_point.longitude,
            start_address=data.start_point.address,
            end_latitude=data.end_point.latitude,
            end_longitude=data.end_point.longitude,
            end_address=data.end_point.address,
            start_date=to_naive_utc(data.start_date),
            end_date=to_naive_utc(data.end_date),
            created_by=created_by,
            created_at=now,
            updated_at=now,
            participants=[],
        )
        self._validate_route_and_window(race)

        self.db.add(race)
        await self.commit()
        logger.info(
            f"Created race {race.id} '{race.name}' ({race.distance_km:.2f} km) "
            f"by {created_by}"
        )
        return self.race_payload(race, now)

    async def list_races(
        self,
        status: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> list[dict]:
        """All races (newest first), optionally filtered by schedule status."""
        now = now or utcnow()
        if status is not None and status not in RaceStatus.ALL:
            raise ValidationError(f"Unknown race status: {status}")

        races = await self.races.list_all()
        changed = False
        payload = []
        for race in races:
            changed |= self.observe_finish(race, now)
            if status is None or race.status_at(now) == status:
                payload.append(self.race_payload(race, now))

        await self._persist_observation(changed)
        return payload

    async def get_race(self, race_id: str, now: Optional[datetime] = None) -> dict:
        """Race detail with distance and finish state."""
        now = now or utcnow()
        race = await self._get_race(race_id)
        changed = self.observe_finish(race, now)
        payload = self.race_payload(race, now)
        await self._persist_observation(changed)
        return payload

    async def update_race(
        self,
        race_id: str,
        data: RaceUpdate,
        now: Optional[datetime] = None,
    ) -> dict:
        """
        Apply a partial update.

        Moving the start or end point changes the race distance, so
        completion is re-evaluated against the new threshold before
        arbitration runs.
        """
        now = now or utcnow()
        race = await self._get_race(race_id)
        changes = data.model_dump(exclude_unset=True)
        old_distance = race.distance_km

        if "name" in changes and changes["name"] is not None:
            race.name = changes["name"].strip()
        if "description" in changes:
            race.description = changes["description"]
        if changes.get("start_point") is not None:
            race.start_latitude = data.start_point.latitude
            race.start_longitude = data.start_point.longitude
            race.start_address = data.start_point.address
        if changes.get("end_point") is not None:
            race.end_latitude = data.end_point.latitude
            race.end_longitude = data.end_point.longitude
            race.end_address = data.end_point.address
        if changes.get("start_date") is not None:
            race.start_date = to_naive_utc(data.start_date)
        if changes.get("end_date") is not None:
            race.end_date = to_naive_utc(data.end_date)

        self._validate_route_and_window(race)

        if race.distance_km != old_distance:
            self._reevaluate_completion(race, now)

        race.updated_at = now
        self.observe_finish(race, now)
        payload = self.race_payload(race, now)
        await self.commit()
        logger.info(f"Updated race {race.id}")
        return payload

    @staticmethod
    def _reevaluate_completion(race: Race, now: datetime) -> None:
        threshold = race.distance_km
        for participant in race.participants:
            reached = has_reached_finish(participant.total_distance or 0.0, threshold)
            if participant.status == ParticipantStatus.COMPLETED and not reached:
                participant.status = ParticipantStatus.ACTIVE
                participant.completed_at = None
                logger.info(
                    f"Participant {participant.user_id} in race {race.id} "
                    f"reverted to active after distance change"
                )
            elif participant.status == ParticipantStatus.ACTIVE and reached:
                participant.status = ParticipantStatus.COMPLETED
                participant.completed_at = now

    async def delete_race(self, race_id: str) -> None:
        race = await self._get_race(race_id)
        await self.races.delete(race)
        await self.commit()
        logger.info(f"Deleted race {race_id}")

    # =========================================================================
    # Participation
    # =========================================================================

    async def ensure_no_ongoing_participation(
        self,
        user_id: str,
        now: datetime,
        exclude_race_id: Optional[str] = None,
    ) -> None:
        """
        A user may hold at most one non-withdrawn participation in races that
        have not ended yet.

        Raises:
            OngoingParticipationError: naming the conflicting race
        """
        conflicting = await self.races.find_ongoing_participation(
            user_id, now, exclude_race_id=exclude_race_id
        )
        if conflicting is None:
            return
        raise OngoingParticipationError(
            "You can participate in only one race at a time. "
            f'Leave or finish "{conflicting.name}" first.',
            conflicting_race={
                "id": conflicting.id,
                "name": conflicting.name,
                "startDate": isoformat_utc(conflicting.start_date),
                "endDate": isoformat_utc(conflicting.end_date),
            },
        )

    async def join_race(
        self,
        race_id: str,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> dict:
        now = now or utcnow()
        race = await self._get_race(race_id)
        user = await self._get_user(user_id)

        if now > race.end_date:
            raise RaceClosedError("Race has ended", race_id=race_id)
        if race.get_participant(user_id) is not None:
            raise AlreadyParticipantError("User is already a participant", race_id=race_id)
        await self.ensure_no_ongoing_participation(user_id, now, exclude_race_id=race.id)

        self.add_participant(race, user, now)
        payload = self.race_payload(race, now)
        await self.commit()
        logger.info(f"User {user_id} joined race {race_id}")
        return payload

    def add_participant(self, race: Race, user: User, now: datetime) -> Participant:
        """
        Append an active participant and touch both the race and the user row.

        Touching the user bumps its version, so a concurrent join by the same
        user to another race fails at commit instead of slipping past
        ensure_no_ongoing_participation.
        """
        participant = Participant(
            user_id=user.id,
            user=user,
            joined_at=now,
            status=ParticipantStatus.ACTIVE,
            total_distance=0.0,
            daily_distances=[],
        )
        race.participants.append(participant)
        race.updated_at = now
        user.last_joined_at = now
        self.observe_finish(race, now)
        return participant

    async def withdraw(
        self,
        race_id: str,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> dict:
        """Withdraw a participant. A withdrawn participant can no longer win."""
        now = now or utcnow()
        race = await self._get_race(race_id)
        participant = race.get_participant(user_id)
        if participant is None:
            raise NotFoundError("Participant not found", race_id=race_id, user_id=user_id)

        if participant.status != ParticipantStatus.WITHDRAWN:
            participant.status = ParticipantStatus.WITHDRAWN
            participant.completed_at = None
            race.updated_at = now
            logger.info(f"User {user_id} withdrew from race {race_id}")

        self.observe_finish(race, now)
        payload = self.race_payload(race, now)
        await self.commit()
        return payload

    # =========================================================================
    # Leaderboards & stats
    # =========================================================================

    async def race_leaderboard(self, race_id: str, now: Optional[datetime] = None) -> dict:
        """Ranked participants of one race plus its finish state."""
        now = now or utcnow()
        race = await self._get_race(race_id)
        changed = self.observe_finish(race, now)

        distance = race.distance_km
        payload = {
            "race": {"id": race.id, "name": race.name, "distance": distance},
            "leaderboard": rank_race(
                (participant_row(p) for p in race.participants), distance
            ),
            "finishState": self.finish_state(race),
        }
        await self._persist_observation(changed)
        return payload

    async def global_leaderboard(self, now: Optional[datetime] = None) -> list[dict]:
        """Standings across all races; only FINAL winners count as wins."""
        now = now or utcnow()
        races = await self.races.list_all()

        changed = False
        outcomes = []
        for race in races:
            changed |= self.observe_finish(race, now)
            outcomes.append(race_outcome(race))

        leaderboard = global_leaderboard(outcomes)
        await self._persist_observation(changed)
        logger.info(f"Global leaderboard generated: {len(leaderboard)} entries")
        return leaderboard

    async def user_stats(self, user_id: str, now: Optional[datetime] = None) -> dict:
        """Races participated, wins, total km and win rate of one user."""
        now = now or utcnow()
        races = await self.races.list_for_user(user_id)

        changed = False
        outcomes = []
        for race in races:
            changed |= self.observe_finish(race, now)
            outcomes.append(race_outcome(race))

        stats = user_stats(user_id, outcomes)
        if stats.name == "Participant":
            user = await self.users.get_by_id(user_id)
            if user:
                stats.name = user.display_name

        await self._persist_observation(changed)
        return stats.to_dict()
