from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from spotch.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    open_id = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255))
    email = Column(String(255), index=True)
    device_id = Column(String(255), nullable=True)
    avatar = Column(String(255), default="default_seed")
    push_token = Column(String(255), nullable=True)
    # Cumulative; level is derived from it by spotch.services.progression.
    xp = Column(Integer, default=0, nullable=False)
    level = Column(Integer, default=1, nullable=False)
    role = Column(String, default="user")
    is_banned = Column(Boolean, default=False)
    is_premium = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
