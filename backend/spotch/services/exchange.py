from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from spotch.core.clock import utcnow
from spotch.core.database import unit_of_work
from spotch.core.errors import BadRequest, NotFound
from spotch.models.coupon import Coupon, Redemption
from spotch.services import ledger

logger = logging.getLogger(__name__)

COUPON_KINDS = {"gift_card", "donation"}


@dataclass(frozen=True)
class RedeemResult:
    redemption_id: int
    coupon_id: int
    reward_name: str
    code: str
    cost: int
    balance: int


def _new_code() -> str:
    return secrets.token_hex(4).upper()


def list_coupons(db: Session) -> list[Coupon]:
    return db.query(Coupon).filter(Coupon.is_active.is_(True)).order_by(Coupon.cost.asc(), Coupon.id.asc()).all()


def list_redemptions(db: Session, user_id: int) -> list[Redemption]:
    return (
        db.query(Redemption)
        .filter(Redemption.user_id == user_id)
        .order_by(Redemption.redeemed_at.desc(), Redemption.id.desc())
        .all()
    )


def redeem(db: Session, user_id: int, coupon_id: int, *, now: datetime | None = None) -> RedeemResult:
    """Spend points on a coupon and hand back a one-off code.

    Stock, wallet and redemption row change together or not at all.
    """
    now = now or utcnow()
    with unit_of_work(db):
        coupon = db.get(Coupon, coupon_id)
        if coupon is None:
            raise NotFound("Coupon not found")
        if not coupon.is_active:
            raise BadRequest("This coupon is no longer available")

        if coupon.stock is not None:
            taken = (
                db.query(Coupon)
                .filter(Coupon.id == coupon.id, Coupon.stock > 0)
                .update({Coupon.stock: Coupon.stock - 1}, synchronize_session=False)
            )
            if not taken:
                raise BadRequest("Out of stock")

        ledger.debit_or_raise(db, user_id, int(coupon.cost), description=f"Redeemed: {coupon.name}", now=now)

        redemption = Redemption(user_id=user_id, coupon_id=coupon.id, code=_new_code(), status="completed", redeemed_at=now)
        db.add(redemption)
        db.flush()
        balance = ledger.get_balance(db, user_id)
        result = RedeemResult(
            redemption_id=redemption.id,
            coupon_id=coupon.id,
            reward_name=coupon.name,
            code=redemption.code,
            cost=int(coupon.cost),
            balance=balance,
        )

    logger.info("exchange.redeem user_id=%s coupon_id=%s redemption_id=%s", user_id, coupon_id, result.redemption_id)
    return result


def create_coupon(
    db: Session,
    *,
    name: str,
    cost: int,
    kind: str = "gift_card",
    stock: int | None = None,
    description: str | None = None,
    data: str | None = None,
) -> Coupon:
    name = (name or "").strip()
    if not name:
        raise BadRequest("Coupon name is required")
    if int(cost) <= 0:
        raise BadRequest("Cost must be positive")
    if kind not in COUPON_KINDS:
        raise BadRequest(f"Unknown coupon kind: {kind}")
    if stock is not None and int(stock) < 0:
        raise BadRequest("Stock cannot be negative")

    with unit_of_work(db):
        coupon = Coupon(name=name, cost=int(cost), kind=kind, stock=stock, description=description, data=data, is_active=True)
        db.add(coupon)
        db.flush()
    db.refresh(coupon)
    logger.info("exchange.coupon_created coupon_id=%s cost=%s stock=%s", coupon.id, coupon.cost, coupon.stock)
    return coupon


def set_coupon_active(db: Session, coupon_id: int, active: bool) -> Coupon:
    with unit_of_work(db):
        coupon = db.get(Coupon, coupon_id)
        if coupon is None:
            raise NotFound("Coupon not found")
        coupon.is_active = bool(active)
        db.flush()
    db.refresh(coupon)
    return coupon
