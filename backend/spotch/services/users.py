from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from spotch.core.clock import utcnow
from spotch.core.database import unit_of_work
from spotch.core.errors import BadRequest, NotFound
from spotch.core.settings import settings
from spotch.models.social import Follow
from spotch.models.transaction import TransactionKind
from spotch.models.user import User
from spotch.services import ledger, progression, quest_tracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Profile:
    user: User
    balance: int
    xp_into_level: int
    xp_needed: int
    followers: int
    following: int
    badges: list[str] = field(default_factory=list)


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def login_or_register(
    db: Session,
    *,
    open_id: str,
    email: str | None = None,
    name: str | None = None,
    avatar: str | None = None,
    device_id: str | None = None,
    now: datetime | None = None,
) -> tuple[User, bool]:
    """Return ``(user, created)``; new users start with the welcome bonus."""
    open_id = (open_id or "").strip()
    if not open_id:
        raise BadRequest("open_id is required")

    existing = db.query(User).filter(User.open_id == open_id).first()
    if existing is not None:
        return existing, False

    now = now or utcnow()
    with unit_of_work(db):
        user = User(
            open_id=open_id,
            email=(email or "").strip().lower() or None,
            name=(name or "").strip() or "Spotter",
            avatar=(avatar or "").strip() or "default_seed",
            device_id=device_id,
            xp=0,
            level=1,
            role="user",
            is_banned=False,
            is_premium=False,
        )
        db.add(user)
        db.flush()
        if settings.welcome_bonus > 0:
            ledger.credit(
                db,
                user.id,
                settings.welcome_bonus,
                description="Welcome bonus",
                kind=TransactionKind.INITIAL,
                now=now,
            )
        else:
            ledger.get_or_create_wallet(db, user.id)
    db.refresh(user)
    logger.info("users.registered user_id=%s", user.id)
    return user, True


def update_push_token(db: Session, user_id: int, token: str | None) -> User:
    with unit_of_work(db):
        user = get_user(db, user_id)
        user.push_token = (token or "").strip() or None
        db.flush()
    db.refresh(user)
    return user


def follow(db: Session, follower_id: int, following_id: int) -> bool:
    """Returns False when the follow already existed."""
    if follower_id == following_id:
        raise BadRequest("You cannot follow yourself")
    with unit_of_work(db):
        get_user(db, following_id)
        exists = (
            db.query(Follow.id)
            .filter(Follow.follower_id == follower_id, Follow.following_id == following_id)
            .first()
        )
        if exists is not None:
            return False
        db.add(Follow(follower_id=follower_id, following_id=following_id))
        db.flush()
        quest_tracker.refresh_progress(db, follower_id)
    logger.info("users.follow follower_id=%s following_id=%s", follower_id, following_id)
    return True


def unfollow(db: Session, follower_id: int, following_id: int) -> bool:
    with unit_of_work(db):
        removed = (
            db.query(Follow)
            .filter(Follow.follower_id == follower_id, Follow.following_id == following_id)
            .delete(synchronize_session=False)
        )
    return bool(removed)


def get_profile(db: Session, user_id: int) -> Profile:
    user = get_user(db, user_id)
    into, needed = progression.describe_level(int(user.xp or 0), int(user.level or 1))
    followers = db.query(func.count(Follow.id)).filter(Follow.following_id == user_id).scalar() or 0
    following = db.query(func.count(Follow.id)).filter(Follow.follower_id == user_id).scalar() or 0
    return Profile(
        user=user,
        balance=ledger.get_balance(db, user_id),
        xp_into_level=into,
        xp_needed=needed,
        followers=int(followers),
        following=int(following),
        badges=[badge.name for badge in progression.list_badges(db, user_id)],
    )
