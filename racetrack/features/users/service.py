"""
User service.

Creates users and exposes their progression view.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from racetrack.features.progression import progression_snapshot
from racetrack.shared.errors import NotFoundError, UserAlreadyExistsError

from .models import User
from .repository import UserRepository
from .schemas import UserCreate

logger = logging.getLogger(__name__)


class UserService:
    """User lookups and registration."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UserRepository(db)

    async def create_user(self, data: UserCreate) -> User:
        """Register a user. Email, when given, must be unique."""
        if data.email and await self.users.get_by_email(data.email):
            raise UserAlreadyExistsError(f"User with email {data.email} already exists")
        if data.nickname and await self.users.get_by(nickname=data.nickname):
            raise UserAlreadyExistsError(f"Nickname {data.nickname} is taken")

        user = await self.users.create(
            name=data.name,
            email=data.email,
            nickname=data.nickname,
            avatar_url=data.avatar_url,
        )
        await self.db.commit()
        logger.info("Created user %s", user.id)
        return user

    async def get_user(self, user_id: str) -> User:
        """Get user or raise NotFoundError."""
        user = await self.users.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found", user_id=user_id)
        return user

    async def get_profile(self, user_id: str) -> dict:
        """User record plus progression snapshot."""
        user = await self.get_user(user_id)
        return {
            "user": user.to_dict(),
            "progression": progression_snapshot(user.total_xp or 0).to_dict(),
        }
