from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class SpotCreate(BaseModel):
    name: str
    latitude: float
    longitude: float
    total_points: int = Field(..., ge=1)
    rate_per_minute: int = Field(..., ge=1)
    description: Optional[str] = None
    category: Optional[str] = None


class SpotterOut(BaseModel):
    id: int
    name: Optional[str] = None
    avatar: Optional[str] = None


class SpotResponse(BaseModel):
    id: int
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    spotter_id: Optional[int] = None
    owner_id: Optional[int] = None
    total_points: int
    remaining_points: float
    rate_per_minute: int
    tax_rate: int
    active: bool
    spot_level: int
    total_activity: int
    shield_expires_at: Optional[datetime] = None
    tax_boost_expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    spotter: Optional[SpotterOut] = None
    distance_km: Optional[float] = None


class SpotCreateResponse(BaseModel):
    spot: SpotResponse
    balance: int
    earned_xp: int
    level: int
    new_badges: List[str] = []


class SpotRankingResponse(BaseModel):
    id: int
    name: Optional[str] = None
    points: int
    latitude: float
    longitude: float
    active_users: int


class TakeoverResponse(BaseModel):
    spot_id: int
    new_owner_id: int
    previous_owner_id: Optional[int] = None
    cost: int
    payout: int
    balance: int


class ModifierRequest(BaseModel):
    kind: str


class ModifierResponse(BaseModel):
    spot_id: int
    kind: str
    cost: int
    expires_at: datetime
    balance: int


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=280)


class MessageResponse(BaseModel):
    id: int
    spot_id: int
    user_id: int
    content: str
    created_at: Optional[datetime] = None
    author_name: Optional[str] = None
    author_avatar: Optional[str] = None


class SpotStatsResponse(BaseModel):
    likes: int
    messages: int
    is_liked: bool


class WeeklyLeaderboardEntry(BaseModel):
    user_id: int
    name: Optional[str] = None
    avatar: Optional[str] = None
    points: int
