from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class LoginRequest(BaseModel):
    open_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    avatar: Optional[str] = "default_seed"
    device_id: Optional[str] = None


class PushTokenRequest(BaseModel):
    token: Optional[str] = None


class UserResponse(BaseModel):
    id: int
    open_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None
    xp: int
    level: int
    role: Optional[str] = None
    is_premium: Optional[bool] = None
    is_banned: Optional[bool] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    user: UserResponse
    created: bool
    balance: int


class ProfileResponse(BaseModel):
    user: UserResponse
    balance: int
    xp_into_level: int
    xp_needed: int
    followers: int
    following: int
    badges: List[str] = []


class LeaderboardEntry(BaseModel):
    id: int
    name: Optional[str] = None
    avatar: Optional[str] = None
    xp: int
    level: int
