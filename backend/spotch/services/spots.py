from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from fractions import Fraction

from sqlalchemy.orm import Session

from spotch.core.clock import utcnow
from spotch.core.database import unit_of_work
from spotch.core.errors import BadRequest, NotFound
from spotch.core.settings import settings
from spotch.models.spot import Spot
from spotch.models.user import User
from spotch.services import geo, ledger, progression, visits

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 255


@dataclass(frozen=True)
class CreatedSpot:
    spot: Spot
    balance: int
    earned_xp: int
    level: int
    new_badges: list[str]


@dataclass(frozen=True)
class SpotRanking:
    id: int
    name: str
    points: int
    latitude: float
    longitude: float
    active_users: int


def create_spot(
    db: Session,
    user_id: int,
    *,
    name: str,
    latitude: float,
    longitude: float,
    total_points: int,
    rate_per_minute: int,
    description: str | None = None,
    category: str | None = None,
    now: datetime | None = None,
) -> CreatedSpot:
    """Fund a new spot from the creator's wallet.

    The debit, the spot row, the creator's XP and any ``spots_created``
    badges are committed together.
    """
    name = (name or "").strip()
    if not name:
        raise BadRequest("Spot name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise BadRequest("Spot name is too long")
    if not geo.valid_coordinates(latitude, longitude):
        raise BadRequest("Invalid coordinates")
    total_points = int(total_points)
    rate_per_minute = int(rate_per_minute)
    if total_points < settings.min_spot_points:
        raise BadRequest(f"A spot needs at least {settings.min_spot_points} points")
    if rate_per_minute < 1:
        raise BadRequest("Rate per minute must be at least 1")

    now = now or utcnow()
    with unit_of_work(db):
        ledger.debit_or_raise(db, user_id, total_points, description=f"Created spot: {name}", now=now)
        spot = Spot(
            spotter_id=user_id,
            name=name,
            description=description,
            category=(category or "General").strip() or "General",
            latitude=float(latitude),
            longitude=float(longitude),
            total_points=total_points,
            remaining_points=Fraction(total_points),
            rate_per_minute=rate_per_minute,
            tax_rate=settings.default_tax_rate,
            active=True,
            spot_level=1,
            total_activity=0,
            created_at=now,
        )
        db.add(spot)
        db.flush()

        award = progression.add_xp(db, user_id, settings.spot_create_xp)
        badges = list(award.new_badges) + progression.check_badge_unlock(db, user_id, "spots_created")
        balance = ledger.get_balance(db, user_id)

    db.refresh(spot)
    logger.info(
        "spots.created spot_id=%s user_id=%s total_points=%s rate=%s",
        spot.id,
        user_id,
        total_points,
        rate_per_minute,
    )
    return CreatedSpot(spot=spot, balance=balance, earned_xp=award.earned_xp, level=award.level, new_badges=badges)


def get_spot(db: Session, spot_id: int) -> Spot:
    spot = db.get(Spot, spot_id)
    if spot is None:
        raise NotFound("Spot not found")
    return spot


def get_nearby(db: Session, latitude: float, longitude: float, radius_km: float = 5.0) -> list[tuple[Spot, User | None, float]]:
    if not geo.valid_coordinates(latitude, longitude):
        raise BadRequest("Invalid coordinates")
    radius_km = max(0.0, float(radius_km))
    rows = (
        db.query(Spot, User)
        .outerjoin(User, User.id == Spot.spotter_id)
        .filter(Spot.active.is_(True))
        .all()
    )
    nearby: list[tuple[Spot, User | None, float]] = []
    for spot, spotter in rows:
        if spot.latitude is None or spot.longitude is None:
            continue
        distance = geo.haversine_km(latitude, longitude, spot.latitude, spot.longitude)
        if distance <= radius_km:
            nearby.append((spot, spotter, distance))
    nearby.sort(key=lambda item: item[2])
    return nearby


def _consumed(spot: Spot) -> int:
    remaining = max(Fraction(0), Fraction(spot.remaining_points or 0))
    return math.floor(int(spot.total_points or 0) - remaining)


def get_rankings(db: Session, limit: int = 10, now: datetime | None = None) -> list[SpotRanking]:
    """Active spots ordered by points already farmed out of them."""
    spots = db.query(Spot).filter(Spot.active.is_(True)).all()
    consumed = [(spot, _consumed(spot)) for spot in spots]
    consumed.sort(key=lambda item: (-item[1], item[0].id))
    top = consumed[: max(1, int(limit))]
    visitors = visits.active_visitor_counts(db, [spot.id for spot, _ in top], now=now)
    return [
        SpotRanking(
            id=spot.id,
            name=spot.name,
            points=points,
            latitude=float(spot.latitude or 0.0),
            longitude=float(spot.longitude or 0.0),
            active_users=visitors.get(spot.id, 0),
        )
        for spot, points in top
    ]
