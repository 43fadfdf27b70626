from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from spotch.core.clock import is_active_until, utcnow
from spotch.core.database import unit_of_work
from spotch.models.spot import Spot
from spotch.models.user import User
from spotch.services import weekly_points
from spotch.services.push import PushNotifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OwnershipChange:
    spot_id: int
    spot_name: str
    new_owner_id: int
    previous_owner_id: int | None


def process_weekly_turf_wars(
    db: Session,
    *,
    notifier: PushNotifier | None = None,
    now: datetime | None = None,
) -> list[OwnershipChange]:
    """Hand every active, unshielded spot to this week's top scorer there."""
    now = now or utcnow()
    changes: list[OwnershipChange] = []
    skipped_shielded = 0

    with unit_of_work(db):
        spots = db.query(Spot).filter(Spot.active.is_(True)).order_by(Spot.id.asc()).all()
        for spot in spots:
            if is_active_until(spot.shield_expires_at, now):
                skipped_shielded += 1
                continue
            leader = weekly_points.top_scorer(db, spot.id, now=now)
            if leader is None:
                continue
            previous_owner_id = spot.current_owner_id
            if leader.user_id == previous_owner_id:
                continue
            spot.owner_id = leader.user_id
            spot.last_owner_change_at = now
            changes.append(
                OwnershipChange(
                    spot_id=spot.id,
                    spot_name=spot.name,
                    new_owner_id=leader.user_id,
                    previous_owner_id=previous_owner_id,
                )
            )
        db.flush()

    logger.info(
        "turf_wars.done spots_changed=%s shielded=%s",
        len(changes),
        skipped_shielded,
    )
    if notifier is not None:
        for change in changes:
            _notify(db, notifier, change)
    return changes


def _notify(db: Session, notifier: PushNotifier, change: OwnershipChange) -> None:
    winner_name = db.query(User.name).filter(User.id == change.new_owner_id).scalar() or "Someone"
    notifier.notify_user(
        db,
        change.new_owner_id,
        "You Conquered a Spot!",
        f"You are now the owner of {change.spot_name}. Collect those taxes!",
        {"type": "spot_conquered", "spotId": change.spot_id},
    )
    if change.previous_owner_id is not None:
        notifier.notify_user(
            db,
            change.previous_owner_id,
            "Spot Lost!",
            f"{winner_name} has taken over {change.spot_name}! Go claim it back!",
            {"type": "spot_lost", "spotId": change.spot_id},
        )
