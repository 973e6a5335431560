"""
Races API Routes

Endpoints for races, participation, health sync and leaderboards.
The caller is identified by the X-User-Id header.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from racetrack.db.session import get_async_db
from racetrack.features.races import HealthSyncService, RaceService
from racetrack.features.races.schemas import HealthSyncRequest, RaceCreate, RaceUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_current_user_id(x_user_id: str = Header(..., alias="X-User-Id")) -> str:
    """Caller identity, resolved upstream by the auth layer."""
    user_id = x_user_id.strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing user identity")
    return user_id


# === Collection ===


@router.get("")
async def list_races(
    status: Optional[str] = Query(default=None, description="upcoming | active | completed"),
    db: AsyncSession = Depends(get_async_db),
):
    """Get all races with distance and finish state."""
    races = await RaceService(db).list_races(status=status)
    return {"races": races}


@router.post("", status_code=201)
async def create_race(
    request: RaceCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a new race."""
    race = await RaceService(db).create_race(request, created_by=user_id)
    return {
        "message": "Race created successfully",
        "race": race,
        "distance": race["distance"],
    }


@router.get("/leaderboard")
async def get_global_leaderboard(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_db),
):
    """Total km, races and wins per user across all races."""
    leaderboard = await RaceService(db).global_leaderboard()
    return {"leaderboard": leaderboard}


@router.get("/my-stats")
async def get_my_stats(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_db),
):
    """Races participated, wins, total km and win rate of the caller."""
    stats = await RaceService(db).user_stats(user_id)
    return {"stats": stats}


@router.post("/health/sync")
async def health_sync(
    request: HealthSyncRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_db),
):
    """Apply per-day distance totals to the caller's current race."""
    result = await HealthSyncService(db).sync_days(user_id, request.days)
    return result.to_dict()


# === Single race ===


@router.get("/{race_id}")
async def get_race(race_id: str, db: AsyncSession = Depends(get_async_db)):
    """Get race by ID."""
    race = await RaceService(db).get_race(race_id)
    return {"race": race}


@router.patch("/{race_id}")
async def update_race(
    race_id: str,
    request: RaceUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_db),
):
    """Update race fields."""
    race = await RaceService(db).update_race(race_id, request)
    return {"message": "Race updated successfully", "race": race}


@router.delete("/{race_id}")
async def delete_race(
    race_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete a race and its participations."""
    await RaceService(db).delete_race(race_id)
    return {"message": "Race deleted successfully"}


@router.post("/{race_id}/join")
async def join_race(
    race_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_db),
):
    """Join a race."""
    race = await RaceService(db).join_race(race_id, user_id)
    return {"message": "Successfully joined race", "race": race}


@router.post("/{race_id}/withdraw")
async def withdraw_from_race(
    race_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_db),
):
    """Leave a race."""
    race = await RaceService(db).withdraw(race_id, user_id)
    return {"message": "Withdrawn from race", "race": race}


@router.put("/{race_id}/distance")
async def update_distance(race_id: str):
    """Distances change only through health sync."""
    raise HTTPException(
        status_code=403,
        detail="Manual distance updates are disabled. Use /races/health/sync.",
    )


@router.get("/{race_id}/leaderboard")
async def get_race_leaderboard(race_id: str, db: AsyncSession = Depends(get_async_db)):
    """Ranked participants of a race."""
    return await RaceService(db).race_leaderboard(race_id)
