from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from spotch.core.database import get_db
from spotch.core.security import require_admin
from spotch.models.coupon import Coupon
from spotch.schemas.exchange import CouponCreate, CouponResponse
from spotch.schemas.user import UserResponse
from spotch.services import admin, exchange, turf_wars, visits
from spotch.services.push import PushNotifier, get_notifier

router = APIRouter(dependencies=[Depends(require_admin)])


class BanRequest(BaseModel):
    ban: bool = True


class PremiumRequest(BaseModel):
    premium: bool = True


class BroadcastRequest(BaseModel):
    title: str
    body: str


class CouponActiveRequest(BaseModel):
    active: bool = True


@router.get("/admin/stats")
async def admin_stats(db: Session = Depends(get_db)) -> dict:
    return admin.stats(db)


@router.get("/admin/users", response_model=list[UserResponse])
async def list_users(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    return [UserResponse.model_validate(u) for u in admin.list_users(db, limit=limit, offset=offset)]


@router.post("/admin/users/{user_id}/ban", response_model=UserResponse)
async def ban_user(user_id: int, body: BanRequest, db: Session = Depends(get_db)):
    return UserResponse.model_validate(admin.ban_user(db, user_id, body.ban))


@router.post("/admin/users/{user_id}/premium", response_model=UserResponse)
async def set_premium(user_id: int, body: PremiumRequest, db: Session = Depends(get_db)):
    return UserResponse.model_validate(admin.set_premium(db, user_id, body.premium))


@router.delete("/admin/spots/{spot_id}")
async def deactivate_spot(spot_id: int, db: Session = Depends(get_db)) -> dict:
    return {"deactivated": admin.deactivate_spot(db, spot_id)}


@router.post("/admin/broadcast")
async def broadcast(
    body: BroadcastRequest,
    db: Session = Depends(get_db),
    notifier: PushNotifier = Depends(get_notifier),
) -> dict:
    return {"sent": admin.broadcast(db, notifier, body.title, body.body)}


@router.post("/admin/turf-wars")
async def run_turf_wars(db: Session = Depends(get_db), notifier: PushNotifier = Depends(get_notifier)) -> dict:
    changes = turf_wars.process_weekly_turf_wars(db, notifier=notifier)
    return {"changed": [asdict(c) for c in changes]}


@router.post("/admin/visits/cleanup")
async def cleanup_visits(db: Session = Depends(get_db)) -> dict:
    return {"closed": visits.cleanup_stale_visits(db)}


@router.get("/admin/coupons", response_model=list[CouponResponse])
async def list_coupons(db: Session = Depends(get_db)):
    rows = db.query(Coupon).order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()
    return [CouponResponse.model_validate(c) for c in rows]


@router.post("/admin/coupons", response_model=CouponResponse)
async def create_coupon(body: CouponCreate, db: Session = Depends(get_db)):
    coupon = exchange.create_coupon(
        db,
        name=body.name,
        cost=body.cost,
        kind=body.kind,
        stock=body.stock,
        description=body.description,
        data=body.data,
    )
    return CouponResponse.model_validate(coupon)


@router.post("/admin/coupons/{coupon_id}/active", response_model=CouponResponse)
async def set_coupon_active(coupon_id: int, body: CouponActiveRequest, db: Session = Depends(get_db)):
    return CouponResponse.model_validate(exchange.set_coupon_active(db, coupon_id, body.active))
