from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from spotch.core.database import get_db
from spotch.core.security import require_user_id
from spotch.schemas.user import LoginRequest, LoginResponse, ProfileResponse, PushTokenRequest, UserResponse
from spotch.services import ledger, users

router = APIRouter()


@router.post("/users/login", response_model=LoginResponse)
async def login_or_register(body: LoginRequest, db: Session = Depends(get_db)):
    user, created = users.login_or_register(
        db,
        open_id=body.open_id,
        email=body.email,
        name=body.name,
        avatar=body.avatar,
        device_id=body.device_id,
    )
    return LoginResponse(
        user=UserResponse.model_validate(user),
        created=created,
        balance=ledger.get_balance(db, user.id),
    )


@router.get("/users/me", response_model=ProfileResponse)
async def my_profile(db: Session = Depends(get_db), user_id: int = Depends(require_user_id)):
    profile = users.get_profile(db, user_id)
    return ProfileResponse(
        user=UserResponse.model_validate(profile.user),
        balance=profile.balance,
        xp_into_level=profile.xp_into_level,
        xp_needed=profile.xp_needed,
        followers=profile.followers,
        following=profile.following,
        badges=profile.badges,
    )


@router.put("/users/me/push-token", response_model=UserResponse)
async def update_push_token(
    body: PushTokenRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(require_user_id),
):
    return UserResponse.model_validate(users.update_push_token(db, user_id, body.token))


@router.get("/users/{target_id}", response_model=UserResponse)
async def get_user(target_id: int, db: Session = Depends(get_db), user_id: int = Depends(require_user_id)):
    return UserResponse.model_validate(users.get_user(db, target_id))


@router.post("/users/{target_id}/follow")
async def follow(target_id: int, db: Session = Depends(get_db), user_id: int = Depends(require_user_id)) -> dict:
    created = users.follow(db, user_id, target_id)
    return {"following": True, "created": created}


@router.delete("/users/{target_id}/follow")
async def unfollow(target_id: int, db: Session = Depends(get_db), user_id: int = Depends(require_user_id)) -> dict:
    removed = users.unfollow(db, user_id, target_id)
    return {"following": False, "removed": removed}
