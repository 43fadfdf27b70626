from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from spotch.core.database import unit_of_work
from spotch.core.errors import BadRequest, NotFound
from spotch.models.spot import Spot
from spotch.models.transaction import Transaction
from spotch.models.user import User
from spotch.models.visit import Visit
from spotch.services import quest_tracker, spot_budget
from spotch.services.push import PushNotifier

logger = logging.getLogger(__name__)


def ban_user(db: Session, user_id: int, ban: bool = True) -> User:
    with unit_of_work(db):
        user = db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        user.is_banned = bool(ban)
        db.flush()
    db.refresh(user)
    logger.info("admin.ban user_id=%s banned=%s", user_id, bool(ban))
    return user


def set_premium(db: Session, user_id: int, premium: bool = True) -> User:
    with unit_of_work(db):
        user = db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        user.is_premium = bool(premium)
        db.flush()
        quest_tracker.refresh_progress(db, user_id)
    db.refresh(user)
    logger.info("admin.premium user_id=%s premium=%s", user_id, bool(premium))
    return user


def deactivate_spot(db: Session, spot_id: int) -> bool:
    with unit_of_work(db):
        if db.get(Spot, spot_id) is None:
            raise NotFound("Spot not found")
        changed = spot_budget.deactivate(db, spot_id)
    return changed


def stats(db: Session) -> dict:
    return {
        "users": int(db.query(func.count(User.id)).scalar() or 0),
        "spots": int(db.query(func.count(Spot.id)).scalar() or 0),
        "active_spots": int(db.query(func.count(Spot.id)).filter(Spot.active.is_(True)).scalar() or 0),
        "open_visits": int(db.query(func.count(Visit.id)).filter(Visit.check_out_time.is_(None)).scalar() or 0),
        "points_in_circulation": int(db.query(func.coalesce(func.sum(Transaction.amount), 0)).scalar() or 0),
    }


def list_users(db: Session, limit: int = 50, offset: int = 0) -> list[User]:
    limit = max(1, min(int(limit or 50), 100))
    offset = max(0, int(offset or 0))
    return db.query(User).order_by(User.created_at.desc(), User.id.desc()).offset(offset).limit(limit).all()


def broadcast(db: Session, notifier: PushNotifier, title: str, body: str) -> int:
    title = (title or "").strip()
    body = (body or "").strip()
    if not title or not body:
        raise BadRequest("Title and body are required")
    tokens = [
        row.push_token
        for row in db.query(User.push_token)
        .filter(User.push_token.isnot(None), User.is_banned.isnot(True))
        .all()
    ]
    sent = notifier.send_many(tokens, title, body, {"type": "broadcast"})
    logger.info("admin.broadcast recipients=%s sent=%s", len(tokens), sent)
    return sent
