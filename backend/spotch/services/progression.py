from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import func
from sqlalchemy.orm import Session

from spotch.core.errors import NotFound
from spotch.models.badge import Badge, UserBadge
from spotch.models.spot import Spot
from spotch.models.transaction import Transaction, TransactionKind
from spotch.models.user import User
from spotch.models.visit import Visit

logger = logging.getLogger(__name__)

XP_PER_LEVEL = 100

BADGE_CATEGORIES = {"spots_created", "visits", "level", "points"}


def xp_threshold(level: int) -> int:
    """Cumulative XP needed to reach ``level``; each level costs ``level * 100``."""
    level = max(1, int(level))
    return XP_PER_LEVEL * level * (level - 1) // 2


def level_for_xp(xp: int) -> int:
    xp = max(0, int(xp or 0))
    level = 1
    while xp >= xp_threshold(level + 1):
        level += 1
    return level


@dataclass(frozen=True)
class XpAward:
    earned_xp: int
    level: int
    leveled_up: bool
    total_xp: int
    xp_into_level: int
    xp_needed: int
    new_badges: list[str] = field(default_factory=list)


def describe_level(total_xp: int, level: int) -> tuple[int, int]:
    return total_xp - xp_threshold(level), level * XP_PER_LEVEL


def add_xp(db: Session, user_id: int, amount: int) -> XpAward:
    user = (
        db.query(User)
        .filter(User.id == user_id)
        .populate_existing()
        .with_for_update()
        .first()
    )
    if user is None:
        raise NotFound("User not found")

    amount = max(0, int(amount))
    previous_level = int(user.level or 1)
    user.xp = int(user.xp or 0) + amount
    user.level = max(previous_level, level_for_xp(user.xp))
    db.flush()

    leveled_up = user.level > previous_level
    new_badges: list[str] = []
    if leveled_up:
        logger.info("progression.level_up user_id=%s level=%s", user_id, user.level)
        new_badges = check_badge_unlock(db, user_id, "level")

    into, needed = describe_level(user.xp, user.level)
    return XpAward(
        earned_xp=amount,
        level=user.level,
        leveled_up=leveled_up,
        total_xp=user.xp,
        xp_into_level=into,
        xp_needed=needed,
        new_badges=new_badges,
    )


def _metric(db: Session, user: User, condition_type: str) -> int:
    if condition_type == "spots_created":
        return int(db.query(func.count(Spot.id)).filter(Spot.spotter_id == user.id).scalar() or 0)
    if condition_type == "visits":
        return int(db.query(func.count(Visit.id)).filter(Visit.user_id == user.id).scalar() or 0)
    if condition_type == "level":
        return int(user.level or 1)
    if condition_type == "points":
        total = (
            db.query(func.coalesce(func.sum(Transaction.amount), 0))
            .filter(Transaction.user_id == user.id, Transaction.kind == TransactionKind.EARN.value)
            .scalar()
        )
        return int(total or 0)
    return 0


def check_badge_unlock(db: Session, user_id: int, category: str = "any") -> list[str]:
    """Grant every badge the user now qualifies for and return their names."""
    user = db.get(User, user_id)
    if user is None:
        return []

    query = db.query(Badge)
    if category != "any":
        query = query.filter(Badge.condition_type == category)
    badges = query.order_by(Badge.id.asc()).all()
    if not badges:
        return []

    earned_ids = {row.badge_id for row in db.query(UserBadge.badge_id).filter(UserBadge.user_id == user_id).all()}
    metrics: dict[str, int] = {}
    unlocked: list[str] = []
    for badge in badges:
        if badge.id in earned_ids:
            continue
        if badge.condition_type not in metrics:
            metrics[badge.condition_type] = _metric(db, user, badge.condition_type)
        if metrics[badge.condition_type] >= int(badge.condition_value or 0):
            db.add(UserBadge(user_id=user_id, badge_id=badge.id))
            unlocked.append(badge.name)

    if unlocked:
        db.flush()
        logger.info("progression.badges_unlocked user_id=%s badges=%s", user_id, unlocked)
    return unlocked


def list_badges(db: Session, user_id: int) -> list[Badge]:
    return (
        db.query(Badge)
        .join(UserBadge, UserBadge.badge_id == Badge.id)
        .filter(UserBadge.user_id == user_id)
        .order_by(UserBadge.earned_at.asc(), Badge.id.asc())
        .all()
    )
