from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from spotch.core.database import get_db
from spotch.schemas.spot import WeeklyLeaderboardEntry
from spotch.schemas.user import LeaderboardEntry
from spotch.services import rankings

router = APIRouter()


@router.get("/rankings/global", response_model=list[LeaderboardEntry])
async def global_leaderboard(limit: int = Query(rankings.GLOBAL_LIMIT, ge=1, le=100), db: Session = Depends(get_db)):
    return rankings.global_leaderboard(db, limit=limit)


@router.get("/rankings/spots/{spot_id}", response_model=list[WeeklyLeaderboardEntry])
async def spot_leaderboard(
    spot_id: int,
    limit: int = Query(rankings.SPOT_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return rankings.spot_leaderboard(db, spot_id, limit=limit)
