"""
Base repository with common CRUD operations.

Provides generic database operations for feature repositories.
Uses SQLAlchemy async session for non-blocking database access.

Usage:
    class UserRepository(BaseRepository[User]):
        def __init__(self, db: AsyncSession):
            super().__init__(db, User)

        async def get_by_email(self, email: str) -> User | None:
            return await self.get_by(email=email)
"""

from typing import TypeVar, Generic, Type
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Base repository for database operations.

    Repositories only flush; committing is the caller's unit of work.
    """

    def __init__(self, db: AsyncSession, model: Type[T]):
        """
        Initialize repository.

        Args:
            db: Async database session
            model: SQLAlchemy model class
        """
        self.db = db
        self.model = model

    async def get_by_id(self, id: str) -> T | None:
        """
        Get entity by primary key ID.

        Args:
            id: Primary key value

        Returns:
            Entity if found, None otherwise
        """
        return await self.db.get(self.model, id)

    async def get_by(self, **kwargs) -> T | None:
        """
        Get single entity by arbitrary field values.

        Args:
            **kwargs: Field name-value pairs to filter by

        Returns:
            First matching entity or None
        """
        query = select(self.model)
        for key, value in kwargs.items():
            query = query.where(getattr(self.model, key) == value)
        result = await self.db.execute(query.limit(1))
        return result.scalars().first()

    async def create(self, **kwargs) -> T:
        """
        Create new entity.

        Args:
            **kwargs: Field values for new entity

        Returns:
            Created entity with generated ID
        """
        entity = self.model(**kwargs)
        self.db.add(entity)
        await self.db.flush()
        return entity

    async def delete(self, entity: T) -> None:
        """
        Delete entity.

        Args:
            entity: Entity to delete
        """
        await self.db.delete(entity)
        await self.db.flush()
