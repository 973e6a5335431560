"""
Race-related database models.

Models:
- Race: distance race between two coordinates, owns its participants and
  the cached finish resolution
- Participant: one user's participation in a race
- DailyDistance: per-day distance sample of a participant

A race and its participants form one consistency unit. The race row carries
a version counter (optimistic locking); every write touching participants
also touches the race row so concurrent writers conflict instead of
overwriting each other.
"""

from datetime import datetime
import uuid

from sqlalchemy import (
    Column, String, Text, DateTime, Date, Integer, Float, ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from racetrack.models.base import Base
from racetrack.features.users.models import User  # noqa: F401 - relationship target
from racetrack.shared.geo import haversine
from racetrack.shared.time import utcnow

from .arbitration import Finisher, FinishResolution


class ParticipantStatus:
    """Participant lifecycle states."""

    ACTIVE = "active"
    COMPLETED = "completed"
    WITHDRAWN = "withdrawn"


class RaceStatus:
    """Schedule status derived from the race window."""

    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"

    ALL = (UPCOMING, ACTIVE, COMPLETED)


class Race(Base):
    """
    Distance race.

    The race distance is the great-circle distance between start and end
    points. It is computed on demand and never stored.
    """

    __tablename__ = "races"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    # Route
    start_latitude = Column(Float, nullable=False)
    start_longitude = Column(Float, nullable=False)
    start_address = Column(String(255), nullable=True)
    end_latitude = Column(Float, nullable=False)
    end_longitude = Column(Float, nullable=False)
    end_address = Column(String(255), nullable=True)

    # Window
    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=False, index=True)

    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)

    # Finish resolution (cache of the last arbitration outcome)
    provisional_winner_id = Column(String(36), nullable=True)
    provisional_at = Column(DateTime, nullable=True)
    confirmation_window_ends_at = Column(DateTime, nullable=True)
    final_winner_id = Column(String(36), nullable=True)
    finalized_at = Column(DateTime, nullable=True)

    # Optimistic locking
    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)

    # Relationships
    participants = relationship(
        "Participant",
        back_populates="race",
        lazy="selectin",
        order_by="Participant.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Race {self.id} {self.name!r}>"

    @property
    def distance_km(self) -> float:
        """Great-circle distance between start and end; the completion threshold."""
        return haversine(
            self.start_latitude, self.start_longitude,
            self.end_latitude, self.end_longitude,
        )

    def status_at(self, now: datetime) -> str:
        """Schedule status of the race at `now`."""
        if now < self.start_date:
            return RaceStatus.UPCOMING
        if now <= self.end_date:
            return RaceStatus.ACTIVE
        return RaceStatus.COMPLETED

    def is_running(self, now: datetime) -> bool:
        """True while `now` is inside [start_date, end_date]."""
        return self.start_date <= now <= self.end_date

    def get_participant(self, user_id: str) -> "Participant | None":
        for participant in self.participants:
            if participant.user_id == user_id:
                return participant
        return None

    def finishers(self) -> list[Finisher]:
        """Completed participants with their completion timestamps."""
        return [
            Finisher(user_id=p.user_id, completed_at=p.completed_at)
            for p in self.participants
            if p.status == ParticipantStatus.COMPLETED and p.completed_at is not None
        ]

    @property
    def finish_resolution(self) -> FinishResolution:
        return FinishResolution(
            provisional_winner_id=self.provisional_winner_id,
            provisional_at=self.provisional_at,
            confirmation_window_ends_at=self.confirmation_window_ends_at,
            final_winner_id=self.final_winner_id,
            finalized_at=self.finalized_at,
        )

    @finish_resolution.setter
    def finish_resolution(self, resolution: FinishResolution) -> None:
        self.provisional_winner_id = resolution.provisional_winner_id
        self.provisional_at = resolution.provisional_at
        self.confirmation_window_ends_at = resolution.confirmation_window_ends_at
        self.final_winner_id = resolution.final_winner_id
        self.finalized_at = resolution.finalized_at


class Participant(Base):
    """
    A user's participation in a race.

    total_distance is always the sum of daily_distances; it is recomputed
    after every merge and never adjusted incrementally.
    """

    __tablename__ = "race_participants"
    __table_args__ = (
        UniqueConstraint("race_id", "user_id", name="uq_participant_race_user"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    race_id = Column(
        String(36), ForeignKey("races.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    joined_at = Column(DateTime, default=utcnow)
    status = Column(String(20), nullable=False, default=ParticipantStatus.ACTIVE)
    completed_at = Column(DateTime, nullable=True)
    total_distance = Column(Float, nullable=False, default=0.0)

    # Relationships
    race = relationship("Race", back_populates="participants")
    user = relationship("User", lazy="selectin")
    daily_distances = relationship(
        "DailyDistance",
        back_populates="participant",
        lazy="selectin",
        order_by="DailyDistance.day",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Participant race={self.race_id} user={self.user_id} {self.status}>"

    @property
    def display_name(self) -> str:
        return self.user.display_name if self.user else "Participant"


class DailyDistance(Base):
    """Distance covered by a participant on one UTC calendar day (km)."""

    __tablename__ = "race_daily_distances"
    __table_args__ = (
        UniqueConstraint("participant_id", "day", name="uq_daily_distance_day"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    participant_id = Column(
        Integer,
        ForeignKey("race_participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day = Column(Date, nullable=False)
    distance = Column(Float, nullable=False, default=0.0)

    participant = relationship("Participant", back_populates="daily_distances")

    def __repr__(self):
        return f"<DailyDistance {self.day} {self.distance}km>"
