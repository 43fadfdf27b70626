"""Paid ownership changes and the owner-only spot modifiers.

A takeover costs the spot's remaining budget (rounded up) plus a flat
premium; half of the premium goes to the owner being displaced. Shields
block both takeovers and the weekly turf war, tax boosts raise the owner's
cut on every heartbeat.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from spotch.core.clock import as_utc, is_active_until, utcnow
from spotch.core.database import unit_of_work
from spotch.core.errors import BadRequest, Forbidden, NotFound, PreconditionFailed
from spotch.core.settings import settings
from spotch.models.spot import Spot
from spotch.services import ledger, spot_budget
from spotch.services.push import PushNotifier

logger = logging.getLogger(__name__)

MODIFIER_SHIELD = "shield"
MODIFIER_TAX_BOOST = "tax_boost"


@dataclass(frozen=True)
class TakeoverResult:
    spot_id: int
    new_owner_id: int
    previous_owner_id: int | None
    cost: int
    payout: int
    balance: int


@dataclass(frozen=True)
class ModifierResult:
    spot_id: int
    kind: str
    cost: int
    expires_at: datetime
    balance: int


def takeover_cost(spot: Spot, premium: int | None = None) -> int:
    premium = settings.takeover_premium if premium is None else int(premium)
    return max(0, math.ceil(spot_budget.remaining(spot))) + premium


def takeover_payout(premium: int | None = None, fraction: float | None = None) -> int:
    premium = settings.takeover_premium if premium is None else int(premium)
    fraction = settings.takeover_payout_fraction if fraction is None else float(fraction)
    return math.floor(premium * fraction)


def _lock_spot(db: Session, spot_id: int) -> Spot:
    spot = db.query(Spot).filter(Spot.id == spot_id).populate_existing().with_for_update().first()
    if spot is None:
        raise NotFound("Spot not found")
    return spot


def take_over(
    db: Session,
    spot_id: int,
    challenger_id: int,
    *,
    notifier: PushNotifier | None = None,
    now: datetime | None = None,
) -> TakeoverResult:
    now = now or utcnow()
    with unit_of_work(db):
        spot = _lock_spot(db, spot_id)
        if not spot.active:
            raise PreconditionFailed("Spot is inactive")
        if is_active_until(spot.shield_expires_at, now):
            raise PreconditionFailed("Spot is shielded")
        previous_owner_id = spot.current_owner_id
        if previous_owner_id == challenger_id:
            raise PreconditionFailed("You already own this spot")

        cost = takeover_cost(spot)
        ledger.debit_or_raise(db, challenger_id, cost, description=f"Takeover of {spot.name}", now=now)

        payout = 0
        if previous_owner_id is not None:
            payout = takeover_payout()
            if payout > 0:
                ledger.credit(db, previous_owner_id, payout, description=f"Buyout of {spot.name}", now=now)

        spot.owner_id = challenger_id
        spot.last_owner_change_at = now
        spot.shield_expires_at = None
        spot.tax_boost_expires_at = None
        db.flush()

        balance = ledger.get_balance(db, challenger_id)
        spot_name = spot.name

    logger.info(
        "takeover.done spot_id=%s new_owner=%s previous_owner=%s cost=%s payout=%s",
        spot_id,
        challenger_id,
        previous_owner_id,
        cost,
        payout,
    )
    if notifier is not None and previous_owner_id is not None:
        notifier.notify_user(
            db,
            previous_owner_id,
            "Spot Lost!",
            f"Someone bought {spot_name} out from under you.",
            {"type": "spot_lost", "spotId": spot_id},
        )
    return TakeoverResult(
        spot_id=spot_id,
        new_owner_id=challenger_id,
        previous_owner_id=previous_owner_id,
        cost=cost,
        payout=payout,
        balance=balance,
    )


def _modifier_terms(kind: str) -> tuple[int, int, str]:
    if kind == MODIFIER_SHIELD:
        return settings.shield_cost, settings.shield_hours, "shield_expires_at"
    if kind == MODIFIER_TAX_BOOST:
        return settings.tax_boost_cost, settings.tax_boost_hours, "tax_boost_expires_at"
    raise BadRequest(f"Unknown modifier: {kind}")


def activate_modifier(
    db: Session,
    spot_id: int,
    user_id: int,
    kind: str,
    *,
    now: datetime | None = None,
) -> ModifierResult:
    """Buy a shield or tax boost; an active one is extended rather than reset."""
    now = now or utcnow()
    cost, hours, column = _modifier_terms(kind)
    with unit_of_work(db):
        spot = _lock_spot(db, spot_id)
        if not spot.active:
            raise PreconditionFailed("Spot is inactive")
        if spot.current_owner_id != user_id:
            raise Forbidden("Only the owner can do that")

        ledger.debit_or_raise(db, user_id, cost, description=f"{kind.replace('_', ' ').title()} for {spot.name}", now=now)

        current = as_utc(getattr(spot, column))
        base = current if current is not None and current > now else now
        expires_at = base + timedelta(hours=hours)
        setattr(spot, column, expires_at)
        db.flush()
        balance = ledger.get_balance(db, user_id)

    logger.info("takeover.modifier spot_id=%s kind=%s expires_at=%s", spot_id, kind, expires_at.isoformat())
    return ModifierResult(spot_id=spot_id, kind=kind, cost=cost, expires_at=expires_at, balance=balance)
