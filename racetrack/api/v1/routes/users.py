"""
User Routes

Endpoints for user registration and progression.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from racetrack.db.session import get_async_db
from racetrack.features.users import UserCreate, UserService

router = APIRouter()


@router.post("", status_code=201)
async def create_user(request: UserCreate, db: AsyncSession = Depends(get_async_db)):
    """Register a user."""
    user = await UserService(db).create_user(request)
    return {"user": user.to_dict()}


@router.get("/{user_id}")
async def get_user(user_id: str, db: AsyncSession = Depends(get_async_db)):
    """
    Get user with progression.

    Returns lifetime distance, XP, level and progress toward the next level.
    """
    return await UserService(db).get_profile(user_id)
