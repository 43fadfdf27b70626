from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CouponResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    cost: int
    kind: str
    stock: Optional[int] = None
    is_active: bool

    class Config:
        from_attributes = True


class CouponCreate(BaseModel):
    name: str
    cost: int = Field(..., ge=1)
    kind: str = "gift_card"
    stock: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    data: Optional[str] = None


class RedemptionResponse(BaseModel):
    id: int
    coupon_id: int
    code: str
    status: str
    redeemed_at: Optional[datetime] = None
    coupon: Optional[CouponResponse] = None

    class Config:
        from_attributes = True


class RedeemResponse(BaseModel):
    redemption_id: int
    coupon_id: int
    reward_name: str
    code: str
    cost: int
    balance: int

    class Config:
        from_attributes = True
