from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.sql import func

from spotch.core.database import Base


class WeeklySpotPoints(Base):
    __tablename__ = "weekly_spot_points"
    __table_args__ = (
        UniqueConstraint("spot_id", "user_id", "week_start", name="uq_weekly_spot_points_spot_user_week"),
        Index("ix_weekly_spot_points_spot_week_points", "spot_id", "week_start", "points"),
    )

    id = Column(Integer, primary_key=True, index=True)
    spot_id = Column(Integer, ForeignKey("spots.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    week_start = Column(DateTime(timezone=True), nullable=False)
    points = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
