"""
Race repository.

Data access layer for Race and its participants. Participants, their daily
distances and users are eagerly loaded (selectin) with every race.
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from racetrack.shared.repository import BaseRepository
from .models import Race, Participant, ParticipantStatus


class RaceRepository(BaseRepository[Race]):
    """Repository for race operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Race)

    async def list_all(self) -> list[Race]:
        """All races, newest start first."""
        result = await self.db.execute(
            select(Race).order_by(Race.start_date.desc(), Race.id)
        )
        return list(result.scalars().all())

    async def list_for_user(self, user_id: str) -> list[Race]:
        """Races the user participates (or participated) in."""
        result = await self.db.execute(
            select(Race)
            .join(Participant, Participant.race_id == Race.id)
            .where(Participant.user_id == user_id)
            .order_by(Race.start_date.desc(), Race.id)
        )
        return list(result.scalars().unique().all())

    async def list_running_for_user(self, user_id: str, now: datetime) -> list[Race]:
        """
        Races whose window contains `now` where the user holds a
        non-withdrawn participation.
        """
        result = await self.db.execute(
            select(Race)
            .join(Participant, Participant.race_id == Race.id)
            .where(
                Participant.user_id == user_id,
                Participant.status != ParticipantStatus.WITHDRAWN,
                Race.start_date <= now,
                Race.end_date >= now,
            )
        )
        return list(result.scalars().unique().all())

    async def find_ongoing_participation(
        self,
        user_id: str,
        now: datetime,
        exclude_race_id: str | None = None,
    ) -> Race | None:
        """
        A race that has not ended yet where the user holds a non-withdrawn
        participation, other than `exclude_race_id`.
        """
        query = (
            select(Race)
            .join(Participant, Participant.race_id == Race.id)
            .where(
                Participant.user_id == user_id,
                Participant.status != ParticipantStatus.WITHDRAWN,
                Race.end_date >= now,
            )
        )
        if exclude_race_id is not None:
            query = query.where(Race.id != exclude_race_id)

        result = await self.db.execute(query.order_by(Race.end_date).limit(1))
        return result.scalars().first()
