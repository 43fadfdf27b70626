from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class CheckInRequest(BaseModel):
    spot_id: int
    latitude: float
    longitude: float


class VisitResponse(BaseModel):
    id: int
    spot_id: int
    user_id: int
    check_in_time: datetime
    check_out_time: Optional[datetime] = None
    last_heartbeat_at: Optional[datetime] = None
    earned_points: float


class HeartbeatResponse(BaseModel):
    visit_id: int
    spot_id: int
    points_awarded: int
    tax_paid: int
    user_gain: int
    earned_xp: int
    level: int
    leveled_up: bool
    current_xp: int
    xp_needed: int
    earned_points: float
    remaining_points: float
    spot_level: int
    new_badges: List[str] = []
