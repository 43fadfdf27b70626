from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from spotch.core.database import get_db
from spotch.core.security import get_current_user, require_user_id
from spotch.schemas.exchange import CouponResponse, RedeemResponse, RedemptionResponse
from spotch.services import exchange

router = APIRouter(dependencies=[Depends(get_current_user)])


@router.get("/exchange/coupons", response_model=list[CouponResponse])
async def list_coupons(db: Session = Depends(get_db)):
    return [CouponResponse.model_validate(c) for c in exchange.list_coupons(db)]


@router.get("/exchange/redemptions", response_model=list[RedemptionResponse])
async def list_redemptions(db: Session = Depends(get_db), user_id: int = Depends(require_user_id)):
    return [RedemptionResponse.model_validate(r) for r in exchange.list_redemptions(db, user_id)]


@router.post("/exchange/coupons/{coupon_id}/redeem", response_model=RedeemResponse)
async def redeem(coupon_id: int, db: Session = Depends(get_db), user_id: int = Depends(require_user_id)):
    return RedeemResponse.model_validate(exchange.redeem(db, user_id, coupon_id))
