from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from spotch.core.clock import week_start
from spotch.models.user import User
from spotch.models.weekly_spot_points import WeeklySpotPoints


def add_points(db: Session, spot_id: int, user_id: int, points: int, now: datetime | None = None) -> None:
    """Add gross points to the (spot, user, week) bucket, creating it on first use."""
    points = int(points)
    if points <= 0:
        return
    start = week_start(now)
    updated = (
        db.query(WeeklySpotPoints)
        .filter(
            WeeklySpotPoints.spot_id == spot_id,
            WeeklySpotPoints.user_id == user_id,
            WeeklySpotPoints.week_start == start,
        )
        .update({WeeklySpotPoints.points: WeeklySpotPoints.points + points}, synchronize_session=False)
    )
    if not updated:
        db.add(WeeklySpotPoints(spot_id=spot_id, user_id=user_id, week_start=start, points=points))
        db.flush()


def points_for(db: Session, spot_id: int, user_id: int, now: datetime | None = None) -> int:
    value = (
        db.query(WeeklySpotPoints.points)
        .filter(
            WeeklySpotPoints.spot_id == spot_id,
            WeeklySpotPoints.user_id == user_id,
            WeeklySpotPoints.week_start == week_start(now),
        )
        .scalar()
    )
    return int(value or 0)


def top_scorer(db: Session, spot_id: int, now: datetime | None = None) -> WeeklySpotPoints | None:
    return (
        db.query(WeeklySpotPoints)
        .filter(WeeklySpotPoints.spot_id == spot_id, WeeklySpotPoints.week_start == week_start(now))
        .order_by(WeeklySpotPoints.points.desc(), WeeklySpotPoints.id.asc())
        .first()
    )


def leaderboard(db: Session, spot_id: int, now: datetime | None = None, limit: int = 10) -> list[dict]:
    limit = max(1, min(int(limit or 10), 100))
    rows = (
        db.query(WeeklySpotPoints, User)
        .join(User, User.id == WeeklySpotPoints.user_id)
        .filter(WeeklySpotPoints.spot_id == spot_id, WeeklySpotPoints.week_start == week_start(now))
        .order_by(WeeklySpotPoints.points.desc(), WeeklySpotPoints.id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "user_id": user.id,
            "name": user.name,
            "avatar": user.avatar,
            "points": int(entry.points or 0),
        }
        for entry, user in rows
    ]
