from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from spotch.core.database import Base
from spotch.models.types import Rational


class Spot(Base):
    __tablename__ = "spots"

    id = Column(Integer, primary_key=True, index=True)
    spotter_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=True)
    owner_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=True)
    name = Column(String(255))
    description = Column(Text, nullable=True)
    category = Column(String(50), default="General")
    latitude = Column(Float)
    longitude = Column(Float)

    total_points = Column(Integer, nullable=False)
    remaining_points = Column(Rational, nullable=False)
    rate_per_minute = Column(Integer, nullable=False)
    tax_rate = Column(Integer, default=5, nullable=False)
    active = Column(Boolean, default=True, index=True)

    spot_level = Column(Integer, default=1, nullable=False)
    total_activity = Column(Integer, default=0, nullable=False)

    shield_expires_at = Column(DateTime(timezone=True), nullable=True)
    tax_boost_expires_at = Column(DateTime(timezone=True), nullable=True)
    last_owner_change_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def current_owner_id(self) -> int | None:
        return self.owner_id or self.spotter_id
