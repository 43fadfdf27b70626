from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from spotch.core.errors import NotFound
from spotch.models.spot import Spot
from spotch.models.user import User
from spotch.services import weekly_points

GLOBAL_LIMIT = 20
SPOT_LIMIT = 10


def global_leaderboard(db: Session, limit: int = GLOBAL_LIMIT) -> list[dict]:
    limit = max(1, min(int(limit or GLOBAL_LIMIT), 100))
    users = (
        db.query(User)
        .filter(User.is_banned.isnot(True))
        .order_by(User.xp.desc(), User.id.asc())
        .limit(limit)
        .all()
    )
    return [
        {"id": u.id, "name": u.name, "avatar": u.avatar, "xp": int(u.xp or 0), "level": int(u.level or 1)}
        for u in users
    ]


def spot_leaderboard(db: Session, spot_id: int, now: datetime | None = None, limit: int = SPOT_LIMIT) -> list[dict]:
    """This week's gross points per visitor at one spot."""
    if db.get(Spot, spot_id) is None:
        raise NotFound("Spot not found")
    return weekly_points.leaderboard(db, spot_id, now=now, limit=limit)
