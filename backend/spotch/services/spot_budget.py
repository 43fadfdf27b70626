from __future__ import annotations

import logging
from fractions import Fraction

from sqlalchemy.orm import Session

from spotch.models.spot import Spot

logger = logging.getLogger(__name__)


def remaining(spot: Spot) -> Fraction:
    return Fraction(spot.remaining_points or 0)


def is_depleted(spot: Spot) -> bool:
    return remaining(spot) <= 0


def drain(db: Session, spot: Spot, amount: Fraction | int) -> Fraction:
    """Unconditionally lower the budget by ``amount``.

    The result may dip below zero by less than one increment; the next
    heartbeat's depletion check deactivates the spot.
    """
    spot.remaining_points = remaining(spot) - Fraction(amount)
    db.flush()
    return spot.remaining_points


def deactivate(db: Session, spot_id: int) -> bool:
    spot = db.get(Spot, spot_id)
    if spot is None or not spot.active:
        return False
    spot.active = False
    db.flush()
    logger.info("spot_budget.deactivated spot_id=%s remaining=%s", spot_id, remaining(spot))
    return True
