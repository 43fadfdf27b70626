from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from spotch.core.clock import utcnow
from spotch.core.database import unit_of_work
from spotch.core.errors import BadRequest, NotFound
from spotch.models.social import SpotLike, SpotMessage
from spotch.models.spot import Spot
from spotch.models.user import User
from spotch.services.push import PushNotifier

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 280


def _spot_or_404(db: Session, spot_id: int) -> Spot:
    spot = db.get(Spot, spot_id)
    if spot is None:
        raise NotFound("Spot not found")
    return spot


def toggle_like(db: Session, user_id: int, spot_id: int, *, notifier: PushNotifier | None = None) -> bool:
    """Like the spot, or remove an existing like. Returns the new state."""
    with unit_of_work(db):
        spot = _spot_or_404(db, spot_id)
        existing = db.query(SpotLike).filter(SpotLike.spot_id == spot_id, SpotLike.user_id == user_id).first()
        if existing is not None:
            db.delete(existing)
            liked = False
        else:
            db.add(SpotLike(spot_id=spot_id, user_id=user_id))
            liked = True
        db.flush()
        owner_id = spot.current_owner_id
        spot_name = spot.name

    logger.info("social.like spot_id=%s user_id=%s liked=%s", spot_id, user_id, liked)
    if liked and notifier is not None and owner_id is not None and owner_id != user_id:
        liker = db.query(User.name).filter(User.id == user_id).scalar() or "Someone"
        notifier.notify_user(
            db,
            owner_id,
            "Spot Liked!",
            f'{liker} liked your spot "{spot_name}".',
            {"type": "like", "spotId": spot_id},
        )
    return liked


def post_message(
    db: Session,
    user_id: int,
    spot_id: int,
    content: str,
    *,
    notifier: PushNotifier | None = None,
    now: datetime | None = None,
) -> SpotMessage:
    content = (content or "").strip()
    if not content:
        raise BadRequest("Message cannot be empty")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise BadRequest(f"Message is longer than {MAX_MESSAGE_LENGTH} characters")

    with unit_of_work(db):
        spot = _spot_or_404(db, spot_id)
        message = SpotMessage(spot_id=spot_id, user_id=user_id, content=content, created_at=now or utcnow())
        db.add(message)
        db.flush()
        owner_id = spot.current_owner_id
        spot_name = spot.name

    db.refresh(message)
    logger.info("social.message spot_id=%s user_id=%s message_id=%s", spot_id, user_id, message.id)
    if notifier is not None and owner_id is not None and owner_id != user_id:
        author = db.query(User.name).filter(User.id == user_id).scalar() or "Someone"
        notifier.notify_user(
            db,
            owner_id,
            f"New message at {spot_name}",
            f"{author}: {content[:80]}",
            {"type": "message", "spotId": spot_id},
        )
    return message


def list_messages(db: Session, spot_id: int, limit: int = 50) -> list[tuple[SpotMessage, User]]:
    limit = max(1, min(int(limit or 50), 200))
    return (
        db.query(SpotMessage, User)
        .join(User, User.id == SpotMessage.user_id)
        .filter(SpotMessage.spot_id == spot_id)
        .order_by(SpotMessage.created_at.desc(), SpotMessage.id.desc())
        .limit(limit)
        .all()
    )


def spot_stats(db: Session, spot_id: int, user_id: int | None = None) -> dict:
    likes = db.query(func.count(SpotLike.id)).filter(SpotLike.spot_id == spot_id).scalar() or 0
    messages = db.query(func.count(SpotMessage.id)).filter(SpotMessage.spot_id == spot_id).scalar() or 0
    is_liked = False
    if user_id is not None:
        is_liked = (
            db.query(SpotLike.id).filter(SpotLike.spot_id == spot_id, SpotLike.user_id == user_id).first()
            is not None
        )
    return {"likes": int(likes), "messages": int(messages), "is_liked": is_liked}
