"""
User repository.

Data access layer for the User model.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from racetrack.shared.repository import BaseRepository
from .models import User


class UserRepository(BaseRepository[User]):
    """Repository for User operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, User)

    async def get_by_email(self, email: str) -> User | None:
        """
        Get user by email.

        Args:
            email: Email address (case-insensitive)

        Returns:
            User if found, None otherwise
        """
        return await self.get_by(email=email.strip().lower())
