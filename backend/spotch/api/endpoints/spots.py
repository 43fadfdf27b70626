from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from spotch.core.database import get_db
from spotch.core.security import require_user_id
from spotch.models.spot import Spot
from spotch.models.user import User
from spotch.schemas.spot import (
    MessageCreate,
    MessageResponse,
    ModifierRequest,
    ModifierResponse,
    SpotCreate,
    SpotCreateResponse,
    SpotRankingResponse,
    SpotResponse,
    SpotStatsResponse,
    SpotterOut,
    TakeoverResponse,
)
from spotch.services import social, spots, takeover
from spotch.services.push import PushNotifier, get_notifier

router = APIRouter()


def spot_out(spot: Spot, spotter: User | None = None, distance_km: float | None = None) -> SpotResponse:
    return SpotResponse(
        id=spot.id,
        name=spot.name,
        description=spot.description,
        category=spot.category,
        latitude=spot.latitude,
        longitude=spot.longitude,
        spotter_id=spot.spotter_id,
        owner_id=spot.current_owner_id,
        total_points=int(spot.total_points),
        remaining_points=float(spot.remaining_points or 0),
        rate_per_minute=int(spot.rate_per_minute),
        tax_rate=int(spot.tax_rate or 0),
        active=bool(spot.active),
        spot_level=int(spot.spot_level or 1),
        total_activity=int(spot.total_activity or 0),
        shield_expires_at=spot.shield_expires_at,
        tax_boost_expires_at=spot.tax_boost_expires_at,
        created_at=spot.created_at,
        spotter=(SpotterOut(id=spotter.id, name=spotter.name, avatar=spotter.avatar) if spotter else None),
        distance_km=distance_km,
    )


@router.post("/spots", response_model=SpotCreateResponse)
async def create_spot(body: SpotCreate, db: Session = Depends(get_db), user_id: int = Depends(require_user_id)):
    created = spots.create_spot(
        db,
        user_id,
        name=body.name,
        latitude=body.latitude,
        longitude=body.longitude,
        total_points=body.total_points,
        rate_per_minute=body.rate_per_minute,
        description=body.description,
        category=body.category,
    )
    return SpotCreateResponse(
        spot=spot_out(created.spot),
        balance=created.balance,
        earned_xp=created.earned_xp,
        level=created.level,
        new_badges=created.new_badges,
    )


@router.get("/spots/nearby", response_model=list[SpotResponse])
async def nearby(
    latitude: float,
    longitude: float,
    radius_km: float = Query(5.0, ge=0, le=500),
    db: Session = Depends(get_db),
):
    return [spot_out(spot, spotter, round(distance, 4)) for spot, spotter, distance in spots.get_nearby(db, latitude, longitude, radius_km)]


@router.get("/spots/rankings", response_model=list[SpotRankingResponse])
async def rankings(limit: int = Query(10, ge=1, le=100), db: Session = Depends(get_db)):
    return [SpotRankingResponse(**asdict(r)) for r in spots.get_rankings(db, limit=limit)]


@router.get("/spots/{spot_id}", response_model=SpotResponse)
async def get_spot(spot_id: int, db: Session = Depends(get_db)):
    spot = spots.get_spot(db, spot_id)
    spotter = db.get(User, spot.spotter_id) if spot.spotter_id else None
    return spot_out(spot, spotter)


@router.post("/spots/{spot_id}/takeover", response_model=TakeoverResponse)
async def take_over(
    spot_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(require_user_id),
    notifier: PushNotifier = Depends(get_notifier),
):
    result = takeover.take_over(db, spot_id, user_id, notifier=notifier)
    return TakeoverResponse(**asdict(result))


@router.post("/spots/{spot_id}/modifiers", response_model=ModifierResponse)
async def activate_modifier(
    spot_id: int,
    body: ModifierRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(require_user_id),
):
    result = takeover.activate_modifier(db, spot_id, user_id, body.kind)
    return ModifierResponse(**asdict(result))


@router.post("/spots/{spot_id}/like")
async def toggle_like(
    spot_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(require_user_id),
    notifier: PushNotifier = Depends(get_notifier),
) -> dict:
    return {"liked": social.toggle_like(db, user_id, spot_id, notifier=notifier)}


@router.get("/spots/{spot_id}/messages", response_model=list[MessageResponse])
async def list_messages(spot_id: int, limit: int = Query(50, ge=1, le=200), db: Session = Depends(get_db)):
    return [
        MessageResponse(
            id=message.id,
            spot_id=message.spot_id,
            user_id=message.user_id,
            content=message.content,
            created_at=message.created_at,
            author_name=author.name,
            author_avatar=author.avatar,
        )
        for message, author in social.list_messages(db, spot_id, limit=limit)
    ]


@router.post("/spots/{spot_id}/messages", response_model=MessageResponse)
async def post_message(
    spot_id: int,
    body: MessageCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(require_user_id),
    notifier: PushNotifier = Depends(get_notifier),
):
    message = social.post_message(db, user_id, spot_id, body.content, notifier=notifier)
    return MessageResponse(
        id=message.id,
        spot_id=message.spot_id,
        user_id=message.user_id,
        content=message.content,
        created_at=message.created_at,
    )


@router.get("/spots/{spot_id}/stats", response_model=SpotStatsResponse)
async def spot_stats(spot_id: int, db: Session = Depends(get_db), user_id: int = Depends(require_user_id)):
    return SpotStatsResponse(**social.spot_stats(db, spot_id, user_id))
