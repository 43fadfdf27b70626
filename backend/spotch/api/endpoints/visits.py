from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from spotch.core.database import get_db
from spotch.core.security import get_current_user, require_user_id
from spotch.models.visit import Visit
from spotch.schemas.visit import CheckInRequest, HeartbeatResponse, VisitResponse
from spotch.services import visits
from spotch.services.accrual_engine import AccrualEngine

router = APIRouter(dependencies=[Depends(get_current_user)])


def visit_out(visit: Visit) -> VisitResponse:
    return VisitResponse(
        id=visit.id,
        spot_id=visit.spot_id,
        user_id=visit.user_id,
        check_in_time=visit.check_in_time,
        check_out_time=visit.check_out_time,
        last_heartbeat_at=visit.last_heartbeat_at,
        earned_points=float(visit.earned_points or 0),
    )


@router.post("/visits/check-in", response_model=VisitResponse)
async def check_in(body: CheckInRequest, db: Session = Depends(get_db), user_id: int = Depends(require_user_id)):
    return visit_out(visits.check_in(db, user_id, body.spot_id, body.latitude, body.longitude))


@router.post("/visits/{visit_id}/heartbeat", response_model=HeartbeatResponse)
async def heartbeat(visit_id: int, db: Session = Depends(get_db), user_id: int = Depends(require_user_id)):
    tick = AccrualEngine(db).heartbeat(visit_id, user_id=user_id)
    return HeartbeatResponse(
        visit_id=tick.visit_id,
        spot_id=tick.spot_id,
        points_awarded=tick.points_awarded,
        tax_paid=tick.tax_paid,
        user_gain=tick.user_gain,
        earned_xp=tick.earned_xp,
        level=tick.level,
        leveled_up=tick.leveled_up,
        current_xp=tick.current_xp,
        xp_needed=tick.xp_needed,
        earned_points=float(tick.earned_points),
        remaining_points=float(tick.remaining_points),
        spot_level=tick.spot_level,
        new_badges=tick.new_badges,
    )


@router.post("/visits/{visit_id}/checkout", response_model=VisitResponse)
async def checkout(visit_id: int, db: Session = Depends(get_db), user_id: int = Depends(require_user_id)):
    return visit_out(visits.checkout(db, user_id, visit_id))
