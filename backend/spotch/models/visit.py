from sqlalchemy import Column, DateTime, ForeignKey, Integer
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from spotch.core.database import Base
from spotch.models.types import Rational


class Visit(Base):
    __tablename__ = "visits"

    id = Column(Integer, primary_key=True, index=True)
    spot_id = Column(Integer, ForeignKey("spots.id"), index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    check_in_time = Column(DateTime(timezone=True), nullable=False)
    check_out_time = Column(DateTime(timezone=True), nullable=True, index=True)
    last_heartbeat_at = Column(DateTime(timezone=True), nullable=True, index=True)
    # Fractional points accrued so far; only the integer crossings reach the wallet.
    earned_points = Column(Rational, nullable=False, default=0)
    # earned_points as of the last tick that paid out; tax is measured from here.
    settled_points = Column(Rational, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    spot = relationship("Spot")

    @property
    def is_open(self) -> bool:
        return self.check_out_time is None
