"""Heartbeat settlement for open visits.

Every heartbeat advances the visit's fractional points clock by
``rate_per_minute / heartbeats_per_minute``. Only integer crossings of that
clock reach wallets, so a visit's total wallet award always equals
``floor(earned_points)``. The owner's tax uses the same crossing technique on
the taxed fraction, measured from the last tick that paid out, so after any
such tick the owner's take is ``floor(earned_points * tax_rate)`` no matter
how the ticks fall.

Duplicate heartbeats are not de-duplicated: each call accrues again.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from fractions import Fraction
from typing import Callable

from sqlalchemy.orm import Session

from spotch.core.clock import is_active_until, utcnow
from spotch.core.database import unit_of_work
from spotch.core.errors import Forbidden, NotFound, PreconditionFailed
from spotch.core.settings import settings
from spotch.models.spot import Spot
from spotch.models.visit import Visit
from spotch.services import ledger, progression, spot_budget, weekly_points

logger = logging.getLogger(__name__)

SPOT_LEVEL_ACTIVITY = 500


def crossing_delta(old: Fraction, new: Fraction, rate: Fraction | int = 1) -> int:
    """Number of integers crossed by ``x * rate`` when ``x`` moves from old to new."""
    return math.floor(Fraction(new) * rate) - math.floor(Fraction(old) * rate)


def effective_tax_rate(spot: Spot, now: datetime, boost_rate: int) -> Fraction:
    percent = boost_rate if is_active_until(spot.tax_boost_expires_at, now) else int(spot.tax_rate or 0)
    percent = max(0, min(100, int(percent)))
    return Fraction(percent, 100)


@dataclass(frozen=True)
class TickResult:
    visit_id: int
    spot_id: int
    points_awarded: int
    tax_paid: int
    user_gain: int
    owner_id: int | None
    earned_xp: int
    level: int
    leveled_up: bool
    current_xp: int
    xp_needed: int
    earned_points: Fraction
    remaining_points: Fraction
    spot_level: int
    new_badges: list[str] = field(default_factory=list)


class AccrualEngine:
    def __init__(
        self,
        db: Session,
        *,
        heartbeats_per_minute: int | None = None,
        tax_boost_rate: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._db = db
        self._heartbeats_per_minute = max(1, int(heartbeats_per_minute or settings.heartbeats_per_minute))
        self._tax_boost_rate = int(settings.tax_boost_rate if tax_boost_rate is None else tax_boost_rate)
        self._clock = clock

    def increment_for(self, spot: Spot) -> Fraction:
        return Fraction(int(spot.rate_per_minute or 0), self._heartbeats_per_minute)

    def heartbeat(self, visit_id: int, user_id: int | None = None, now: datetime | None = None) -> TickResult:
        now = now or self._clock()
        depleted_spot_id: int | None = None
        result: TickResult | None = None

        with unit_of_work(self._db):
            visit, spot = self._load(visit_id, user_id)
            if spot_budget.is_depleted(spot):
                # The deactivation is committed even though the call fails.
                spot_budget.deactivate(self._db, spot.id)
                depleted_spot_id = spot.id
            else:
                result = self._settle(visit, spot, now)

        if depleted_spot_id is not None:
            logger.info("accrual.spot_depleted spot_id=%s visit_id=%s", depleted_spot_id, visit_id)
            raise PreconditionFailed("Spot has no points left")
        return result

    def _load(self, visit_id: int, user_id: int | None) -> tuple[Visit, Spot]:
        visit = (
            self._db.query(Visit)
            .filter(Visit.id == visit_id)
            .populate_existing()
            .with_for_update()
            .first()
        )
        if visit is None or not visit.is_open:
            raise NotFound("Invalid visit session")
        if user_id is not None and visit.user_id != user_id:
            raise Forbidden("Visit belongs to another user")

        spot = (
            self._db.query(Spot)
            .filter(Spot.id == visit.spot_id)
            .populate_existing()
            .with_for_update()
            .first()
        )
        if spot is None:
            raise NotFound("Spot not found")
        if not spot.active:
            raise PreconditionFailed("Spot is inactive")
        return visit, spot

    def _settle(self, visit: Visit, spot: Spot, now: datetime) -> TickResult:
        db = self._db
        visit.last_heartbeat_at = now

        increment = self.increment_for(spot)
        xp_increment = increment / 2

        old_earned = Fraction(visit.earned_points or 0)
        new_earned = old_earned + increment
        visit.earned_points = new_earned

        remaining = spot_budget.drain(db, spot, increment)

        award = crossing_delta(old_earned, new_earned)
        tax = 0
        owner_id = spot.current_owner_id
        if award > 0:
            settled = Fraction(visit.settled_points or 0)
            if owner_id is not None and owner_id != visit.user_id:
                rate = effective_tax_rate(spot, now, self._tax_boost_rate)
                # Crossings of the taxed fraction on ticks without an award are collected here.
                tax = max(0, min(award, crossing_delta(settled, new_earned, rate)))
            visit.settled_points = new_earned
        gain = award - tax
        if tax > 0:
            ledger.credit(db, owner_id, tax, description=f"Tax from {spot.name}", now=now)
        if gain > 0:
            ledger.credit(db, visit.user_id, gain, description=f"Farmed at {spot.name}", now=now)
        if award > 0:
            weekly_points.add_points(db, spot.id, visit.user_id, award, now=now)

        spot.total_activity = int(spot.total_activity or 0) + 1
        if spot.total_activity >= int(spot.spot_level or 1) * SPOT_LEVEL_ACTIVITY:
            spot.spot_level = int(spot.spot_level or 1) + 1
            logger.info("accrual.spot_level_up spot_id=%s level=%s", spot.id, spot.spot_level)
        db.flush()

        xp = math.floor(max(1, xp_increment))
        xp_award = progression.add_xp(db, visit.user_id, xp)
        new_badges = list(xp_award.new_badges)
        if gain > 0:
            new_badges += progression.check_badge_unlock(db, visit.user_id, "points")

        logger.debug(
            "accrual.tick visit_id=%s spot_id=%s earned=%s award=%s tax=%s xp=%s remaining=%s",
            visit.id,
            spot.id,
            new_earned,
            award,
            tax,
            xp,
            remaining,
        )
        return TickResult(
            visit_id=visit.id,
            spot_id=spot.id,
            points_awarded=award,
            tax_paid=tax,
            user_gain=gain,
            owner_id=owner_id,
            earned_xp=xp,
            level=xp_award.level,
            leveled_up=xp_award.leveled_up,
            current_xp=xp_award.xp_into_level,
            xp_needed=xp_award.xp_needed,
            earned_points=new_earned,
            remaining_points=remaining,
            spot_level=int(spot.spot_level),
            new_badges=new_badges,
        )
