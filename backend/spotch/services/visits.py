from __future__ import annotations

import logging
from datetime import datetime, timedelta
from fractions import Fraction

from sqlalchemy import func
from sqlalchemy.orm import Session

from spotch.core.clock import utcnow
from spotch.core.database import unit_of_work
from spotch.core.errors import BadRequest, Forbidden, NotFound
from spotch.core.settings import settings
from spotch.models.spot import Spot
from spotch.models.visit import Visit
from spotch.services import geo, progression, quest_tracker

logger = logging.getLogger(__name__)


def check_in(
    db: Session,
    user_id: int,
    spot_id: int,
    latitude: float,
    longitude: float,
    *,
    now: datetime | None = None,
) -> Visit:
    """Open a visit at a spot the caller is standing next to.

    Any other open visit of the same user is closed first, so a user farms at
    most one spot at a time.
    """
    if not geo.valid_coordinates(latitude, longitude):
        raise BadRequest("Invalid coordinates")
    now = now or utcnow()

    with unit_of_work(db):
        spot = db.get(Spot, spot_id)
        if spot is None or not spot.active:
            raise NotFound("Spot not found or inactive")
        distance = geo.haversine_km(latitude, longitude, spot.latitude or 0.0, spot.longitude or 0.0)
        if distance > settings.checkin_radius_km:
            raise BadRequest("Too far from spot")

        closed = (
            db.query(Visit)
            .filter(Visit.user_id == user_id, Visit.check_out_time.is_(None))
            .update({Visit.check_out_time: now}, synchronize_session=False)
        )

        visit = Visit(
            spot_id=spot.id,
            user_id=user_id,
            check_in_time=now,
            last_heartbeat_at=now,
            earned_points=Fraction(0),
        )
        db.add(visit)
        db.flush()

        quest_tracker.refresh_progress(db, user_id, now=now)
        progression.check_badge_unlock(db, user_id, "visits")

    db.refresh(visit)
    logger.info(
        "visits.check_in visit_id=%s user_id=%s spot_id=%s distance_km=%.4f closed=%s",
        visit.id,
        user_id,
        spot_id,
        distance,
        closed,
    )
    return visit


def checkout(db: Session, user_id: int, visit_id: int, *, now: datetime | None = None) -> Visit:
    now = now or utcnow()
    with unit_of_work(db):
        visit = db.get(Visit, visit_id)
        if visit is None:
            raise NotFound("Visit not found")
        if visit.user_id != user_id:
            raise Forbidden("Visit belongs to another user")
        if visit.check_out_time is None:
            visit.check_out_time = now
            db.flush()
    db.refresh(visit)
    logger.info("visits.checkout visit_id=%s user_id=%s", visit_id, user_id)
    return visit


def active_visitor_count(db: Session, spot_id: int, *, now: datetime | None = None) -> int:
    """Distinct users with an open visit that sent a heartbeat recently."""
    cutoff = (now or utcnow()) - timedelta(seconds=settings.active_visitor_window_seconds)
    count = (
        db.query(func.count(func.distinct(Visit.user_id)))
        .filter(
            Visit.spot_id == spot_id,
            Visit.check_out_time.is_(None),
            Visit.last_heartbeat_at >= cutoff,
        )
        .scalar()
    )
    return int(count or 0)


def cleanup_stale_visits(db: Session, *, now: datetime | None = None) -> int:
    now = now or utcnow()
    cutoff = now - timedelta(minutes=settings.stale_visit_minutes)
    with unit_of_work(db):
        closed = (
            db.query(Visit)
            .filter(Visit.check_out_time.is_(None), Visit.last_heartbeat_at < cutoff)
            .update({Visit.check_out_time: now}, synchronize_session=False)
        )
    logger.info("visits.cleanup closed=%s cutoff=%s", closed, cutoff.isoformat())
    return int(closed or 0)


def active_visitor_counts(db: Session, spot_ids: list[int], *, now: datetime | None = None) -> dict[int, int]:
    if not spot_ids:
        return {}
    cutoff = (now or utcnow()) - timedelta(seconds=settings.active_visitor_window_seconds)
    rows = (
        db.query(Visit.spot_id, func.count(func.distinct(Visit.user_id)))
        .filter(
            Visit.spot_id.in_(spot_ids),
            Visit.check_out_time.is_(None),
            Visit.last_heartbeat_at >= cutoff,
        )
        .group_by(Visit.spot_id)
        .all()
    )
    return {spot_id: int(count) for spot_id, count in rows}
