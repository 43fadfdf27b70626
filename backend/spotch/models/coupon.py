from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from spotch.core.database import Base


class Coupon(Base):
    __tablename__ = "coupons"
    __table_args__ = (CheckConstraint("stock IS NULL OR stock >= 0", name="ck_coupons_stock_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    cost = Column(Integer, nullable=False)
    # gift_card | donation
    kind = Column(String, index=True, nullable=False, default="gift_card")
    # NULL means unlimited.
    stock = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    # Reference handed to whoever fulfils the redemption.
    data = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Redemption(Base):
    __tablename__ = "redemptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    coupon_id = Column(Integer, ForeignKey("coupons.id"), index=True, nullable=False)
    code = Column(String, unique=True, nullable=False)
    status = Column(String, nullable=False, default="completed")
    redeemed_at = Column(DateTime(timezone=True), server_default=func.now())

    coupon = relationship("Coupon")
