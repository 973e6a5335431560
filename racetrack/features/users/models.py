"""
User-related models.

Models:
- User: race participant carrying lifetime progression fields
"""

from datetime import datetime
import uuid

from sqlalchemy import Column, String, DateTime, Integer, Float

from racetrack.models.base import Base
from racetrack.shared.time import utcnow


class User(Base):
    """
    Application user.

    Identity and credentials are owned by an external auth service; this
    record keeps the display fields and progression state.

    The version counter serializes per-user writes: joins touch the row, so
    two concurrent joins by one user cannot both commit.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, index=True, nullable=True)

    # Profile
    name = Column(String(100), nullable=True)
    nickname = Column(String(24), unique=True, nullable=True)
    avatar_url = Column(String(500), nullable=True)

    # Progression (mutated only by health sync)
    total_km_lifetime = Column(Float, nullable=False, default=0.0)
    total_xp = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=1)
    last_health_sync_at = Column(DateTime, nullable=True)

    # Participation (touched on every join)
    last_joined_at = Column(DateTime, nullable=True)

    # Optimistic locking
    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(DateTime, default=utcnow)

    __mapper_args__ = {"version_id_col": version}

    @property
    def display_name(self) -> str:
        """Name shown on leaderboards."""
        return self.name or self.email or "Participant"

    def __repr__(self):
        return f"<User {self.id} ({self.name})>"

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "nickname": self.nickname,
            "avatarUrl": self.avatar_url,
            "totalKmLifetime": self.total_km_lifetime or 0.0,
            "totalXp": self.total_xp or 0,
            "level": self.level or 1,
            "lastHealthSyncAt": (
                self.last_health_sync_at.isoformat() + "Z"
                if isinstance(self.last_health_sync_at, datetime) else None
            ),
            "createdAt": self.created_at.isoformat() + "Z" if self.created_at else None,
        }
